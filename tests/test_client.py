import asyncio

import httpx
import pytest

from scholar_client import SemanticScholarClient
from scholar_errors import (
    ConfigurationError,
    NotFoundError,
    TransportError,
    UpstreamError,
    ValidationError,
)
from scholar_filters import SearchFilter
from scholar_rate_limiter import BATCH, STANDARD, RateLimiter

FIELDS = ["paperId", "title"]


def paper(paper_id: str, title: str = "A Paper") -> dict:
    return {"paperId": paper_id, "title": title}


# =============================================================================
# SEARCH
# =============================================================================

@pytest.mark.asyncio
async def test_search_papers_compiles_filter_and_normalizes_page(api) -> None:
    api.add("GET", "/paper/search", body={"total": 25, "offset": 0, "next": 10, "data": [paper(str(i)) for i in range(10)]})

    search = (
        SearchFilter("graph neural networks")
        .with_fields(FIELDS)
        .with_pagination(0, 10)
        .with_year_range(2019, 2021)
        .with_open_access_only()
    )
    page = await api.client.search_papers(search)

    request = api.requests[-1]
    assert request.url.params["query"] == "graph neural networks"
    assert request.url.params["year"] == "2019-2021"
    assert request.url.params["fields"] == "paperId,title"
    assert "openAccessPdf" in request.url.params
    assert request.headers["x-api-key"] == "test-key"
    assert page.next == 10
    assert page.total == 25
    assert len(page.data) == 10
    assert api.limiter.acquired == [STANDARD]


@pytest.mark.asyncio
async def test_search_papers_rejects_invalid_filter_without_dispatch(api) -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        await api.client.search_papers(SearchFilter("").with_fields(FIELDS))

    assert excinfo.value.operation == "search_papers"
    assert api.requests == []
    assert api.limiter.acquired == []


@pytest.mark.asyncio
async def test_search_papers_limit_above_ceiling(api) -> None:
    with pytest.raises(ConfigurationError, match="exceeds"):
        await api.client.search_papers(SearchFilter("x").with_fields(FIELDS).with_pagination(0, 101))
    assert api.requests == []


@pytest.mark.asyncio
async def test_match_paper_returns_best_match(api) -> None:
    api.add("GET", "/paper/search/match", body={"data": [{**paper("abc", "Attention Is All You Need"), "matchScore": 180.2}]})

    search = SearchFilter("attention is all you need").with_fields(FIELDS).with_year_range(2017, 2017)
    match = await api.client.match_paper(search)

    assert match["paperId"] == "abc"
    params = api.requests[-1].url.params
    assert params["year"] == "2017-2017"
    assert "limit" not in params
    assert "offset" not in params


@pytest.mark.asyncio
async def test_match_paper_not_found(api) -> None:
    api.add("GET", "/paper/search/match", status=404, body={"error": "Title match not found"})

    with pytest.raises(NotFoundError) as excinfo:
        await api.client.match_paper(SearchFilter("no such paper").with_fields(FIELDS))

    assert excinfo.value.status_code == 404
    assert excinfo.value.identifiers == ("no such paper",)
    assert "Title match not found" in str(excinfo.value)


# =============================================================================
# PAPERS
# =============================================================================

@pytest.mark.asyncio
async def test_get_paper(api) -> None:
    api.add("GET", "/paper/DOI:10.1000/xyz", body=paper("abc"))

    result = await api.client.get_paper("DOI:10.1000/xyz", "paperId,title,title")

    assert result == {"paperId": "abc", "title": "A Paper"}
    assert api.requests[-1].url.params["fields"] == "paperId,title"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "paper_id, encoded",
    [
        ("abc#2", b"/graph/v1/paper/abc%232"),
        ("abc?fields=externalIds", b"/graph/v1/paper/abc%3Ffields%3DexternalIds"),
        ("abc 2", b"/graph/v1/paper/abc%202"),
    ],
)
async def test_paper_id_is_quoted_into_one_path_segment(api, paper_id, encoded) -> None:
    api.add("GET", "/paper/abc", body=paper("wrong"))
    api.add("GET", f"/paper/{paper_id}", body=paper("right"))

    result = await api.client.get_paper(paper_id, FIELDS)

    assert result["paperId"] == "right"
    request = api.requests[-1]
    assert request.url.raw_path.split(b"?")[0] == encoded
    assert request.url.params["fields"] == "paperId,title"


@pytest.mark.asyncio
async def test_quoted_id_on_sub_resource_and_error(api) -> None:
    api.add("GET", "/paper/abc/citations", body={"data": [{"citingPaper": paper("wrong")}]})

    with pytest.raises(NotFoundError) as excinfo:
        await api.client.get_paper_citations("abc#2", FIELDS)

    assert api.requests[-1].url.raw_path.startswith(b"/graph/v1/paper/abc%232/citations?")
    assert excinfo.value.identifiers == ("abc#2",)


@pytest.mark.asyncio
async def test_field_lists_normalize_alike_on_search_and_lookup(api) -> None:
    fields = [" title", "paperId", "", "title ", "year"]
    api.add("GET", "/paper/search", body={"total": 0, "data": []})
    api.add("GET", "/paper/abc", body=paper("abc"))

    await api.client.search_papers(SearchFilter("x").with_fields(fields))
    await api.client.get_paper("abc", fields)

    search_fields, lookup_fields = (request.url.params["fields"] for request in api.requests)
    assert search_fields == lookup_fields == "title,paperId,year"


@pytest.mark.asyncio
async def test_get_paper_unknown_id_raises_not_found(api) -> None:
    api.add("GET", "/paper/missing", status=404, body={"error": "Paper with id missing not found"})

    with pytest.raises(NotFoundError) as excinfo:
        await api.client.get_paper("missing", FIELDS)

    error = excinfo.value
    assert error.operation == "get_paper"
    assert error.identifiers == ("missing",)
    assert "Paper with id missing not found" in str(error)


@pytest.mark.asyncio
async def test_get_paper_requires_fields_and_id(api) -> None:
    with pytest.raises(ConfigurationError):
        await api.client.get_paper("abc", [])
    with pytest.raises(ValidationError):
        await api.client.get_paper("  ", FIELDS)
    assert api.requests == []


@pytest.mark.asyncio
async def test_rate_limited_response_is_surfaced_not_retried(api) -> None:
    api.add("GET", "/paper/abc", status=429, body={"message": "Too Many Requests"})

    with pytest.raises(UpstreamError) as excinfo:
        await api.client.get_paper("abc", FIELDS)

    assert excinfo.value.is_rate_limited
    assert not isinstance(excinfo.value, NotFoundError)
    assert len(api.requests) == 1


@pytest.mark.asyncio
async def test_server_error_carries_status_and_message(api) -> None:
    api.add("GET", "/paper/abc", status=503, body="upstream unavailable")

    with pytest.raises(UpstreamError) as excinfo:
        await api.client.get_paper("abc", FIELDS)

    assert excinfo.value.status_code == 503
    assert excinfo.value.detail == "upstream unavailable"


@pytest.mark.asyncio
async def test_invalid_json_body_is_an_upstream_error(api) -> None:
    api.add("GET", "/paper/abc", body="<html>oops</html>")

    with pytest.raises(UpstreamError, match="not valid JSON"):
        await api.client.get_paper("abc", FIELDS)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "exc, message",
    [
        (httpx.ReadTimeout("read timed out"), "timed out"),
        (httpx.ConnectError("connection refused"), "network error"),
    ],
)
async def test_transport_failures_map_to_transport_error(api, exc, message) -> None:
    api.add("GET", "/paper/abc", raises=exc)

    with pytest.raises(TransportError, match=message) as excinfo:
        await api.client.get_paper("abc", FIELDS)

    assert excinfo.value.__cause__ is exc
    assert excinfo.value.identifiers == ("abc",)


@pytest.mark.asyncio
async def test_citations_page(api) -> None:
    api.add(
        "GET",
        "/paper/abc/citations",
        body={"offset": 0, "next": 2, "data": [{"citingPaper": paper("c1"), "isInfluential": True}, {"citingPaper": paper("c2")}]},
    )

    page = await api.client.get_paper_citations("abc", FIELDS + ["isInfluential"], offset=0, limit=2)

    assert [c["citingPaper"]["paperId"] for c in page.data] == ["c1", "c2"]
    assert page.total is None
    assert page.next == 2
    assert api.requests[-1].url.params["limit"] == "2"


@pytest.mark.asyncio
async def test_references_page(api) -> None:
    api.add("GET", "/paper/abc/references", body={"offset": 10, "data": [{"citedPaper": paper("r1")}]})

    page = await api.client.get_paper_references("abc", FIELDS, offset=10, limit=5)

    assert page.data[0]["citedPaper"]["paperId"] == "r1"
    assert page.offset == 10
    assert page.next is None


@pytest.mark.asyncio
async def test_citations_of_unknown_paper(api) -> None:
    api.add("GET", "/paper/missing/citations", status=404, body={"error": "Paper not found"})

    with pytest.raises(NotFoundError):
        await api.client.get_paper_citations("missing", FIELDS)


# =============================================================================
# BATCH
# =============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize("count", [0, 501])
async def test_batch_size_out_of_range_is_rejected(api, count) -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        await api.client.get_papers_batch([f"id{i}" for i in range(count)], FIELDS)

    assert isinstance(excinfo.value, ValidationError)
    assert api.requests == []


@pytest.mark.asyncio
async def test_batch_rejects_a_bare_string(api) -> None:
    with pytest.raises(ValidationError, match="not a single string"):
        await api.client.get_papers_batch("abc", FIELDS)

    assert api.requests == []
    assert api.limiter.acquired == []


@pytest.mark.asyncio
async def test_batch_of_500_dispatches_one_request(api) -> None:
    ids = [f"id{i}" for i in range(500)]
    api.add("POST", "/paper/batch", body=[paper(i) for i in ids])

    result = await api.client.get_papers_batch(ids, FIELDS)

    assert len(api.requests) == 1
    assert api.last_json() == {"ids": ids}
    assert api.requests[-1].url.params["fields"] == "paperId,title"
    assert len(result) == 500
    assert api.limiter.acquired == [BATCH]


@pytest.mark.asyncio
async def test_batch_result_is_aligned_with_input(api) -> None:
    api.add("POST", "/paper/batch", body=[paper("valid"), None])

    result = await api.client.get_papers_batch(["valid", "bogus"], FIELDS)

    assert result == [paper("valid"), None]


@pytest.mark.asyncio
async def test_batch_response_of_wrong_length_is_an_error(api) -> None:
    api.add("POST", "/paper/batch", body=[paper("valid")])

    with pytest.raises(UpstreamError, match="line up"):
        await api.client.get_papers_batch(["valid", "bogus"], FIELDS)


# =============================================================================
# AUTHORS
# =============================================================================

@pytest.mark.asyncio
async def test_search_authors(api) -> None:
    api.add("GET", "/author/search", body={"total": 3, "offset": 0, "data": [{"authorId": "1", "name": "Ada"}]})

    page = await api.client.search_authors("ada", ["authorId", "name"], limit=1)

    assert page.data[0]["name"] == "Ada"
    assert page.next == 1
    assert api.requests[-1].url.params["query"] == "ada"


@pytest.mark.asyncio
async def test_search_authors_requires_query(api) -> None:
    with pytest.raises(ConfigurationError):
        await api.client.search_authors("  ", ["name"])


@pytest.mark.asyncio
async def test_get_author_and_papers(api) -> None:
    api.add("GET", "/author/42", body={"authorId": "42", "name": "Ada", "hIndex": 12})
    api.add("GET", "/author/42/papers", body={"offset": 0, "data": [paper("p1")]})

    author = await api.client.get_author("42", ["authorId", "name", "hIndex"])
    papers = await api.client.get_author_papers("42", FIELDS, limit=10)

    assert author["hIndex"] == 12
    assert "affiliations" not in author
    assert papers.data == [paper("p1")]
    assert papers.next is None


@pytest.mark.asyncio
async def test_unknown_author_raises_not_found(api) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        await api.client.get_author("0", ["name"])
    assert excinfo.value.identifiers == ("0",)


# =============================================================================
# CLIENT LIFECYCLE
# =============================================================================

@pytest.mark.asyncio
async def test_no_api_key_sends_no_credential_header() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=paper("abc"))

    limiter = RateLimiter({STANDARD: 0.0, BATCH: 0.0})
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        async with SemanticScholarClient(rate_limiter=limiter, http_client=http) as client:
            await client.get_paper("abc", FIELDS)

    assert "x-api-key" not in seen[0].headers


@pytest.mark.asyncio
async def test_client_must_be_opened_before_use() -> None:
    client = SemanticScholarClient(rate_limiter=RateLimiter({STANDARD: 0.0, BATCH: 0.0}))
    with pytest.raises(RuntimeError, match="not open"):
        await client.get_paper("abc", FIELDS)


# =============================================================================
# SHARED LIMITER
# =============================================================================

class GrantLog(RateLimiter):
    """Real-interval limiter that keeps every grant time."""

    def __init__(self) -> None:
        super().__init__()
        self.grants: list[float] = []

    async def acquire(self, channel: str = STANDARD) -> float:
        granted = await super().acquire(channel)
        self.grants.append(granted)
        return granted


def failing_api(request: httpx.Request) -> httpx.Response:
    paper_id = request.url.path.rsplit("/", 1)[-1]
    if paper_id == "down":
        raise httpx.ConnectError("connection refused", request=request)
    if paper_id == "broken":
        return httpx.Response(500, json={"error": "internal error"})
    return httpx.Response(200, json=paper(paper_id))


@pytest.mark.asyncio
async def test_failures_do_not_disturb_concurrent_calls_or_spacing() -> None:
    limiter = GrantLog()
    interval = limiter.interval(STANDARD)

    async with httpx.AsyncClient(transport=httpx.MockTransport(failing_api)) as http:
        async with SemanticScholarClient(rate_limiter=limiter, http_client=http) as client:
            results = await asyncio.gather(
                client.get_paper("p1", FIELDS),
                client.get_paper("down", FIELDS),
                client.get_paper("broken", FIELDS),
                client.get_paper("p2", FIELDS),
                client.get_paper("p3", FIELDS),
                return_exceptions=True,
            )
            after = await client.get_paper("p4", FIELDS)

    assert results[0] == paper("p1")
    assert isinstance(results[1], TransportError)
    assert isinstance(results[2], UpstreamError)
    assert results[2].status_code == 500
    assert results[3] == paper("p2")
    assert results[4] == paper("p3")
    assert after == paper("p4")

    assert len(limiter.grants) == 6
    grants = sorted(limiter.grants)
    gaps = [later - earlier for earlier, later in zip(grants, grants[1:])]
    assert all(gap >= interval - 1e-9 for gap in gaps)
