"""
Async client for the Semantic Scholar Academic Graph API.

One method per upstream capability. Every request first takes a slot from
the injected ``RateLimiter`` (batch lookups use the slower batch channel),
then goes out over ``httpx`` with a bounded timeout. Failures are mapped to
the ``scholar_errors`` taxonomy; nothing is retried here, including 429s.

Usage:
    >>> limiter = RateLimiter()
    >>> async with SemanticScholarClient(api_key, rate_limiter=limiter) as client:
    ...     page = await client.search_papers(
    ...         SearchFilter("diffusion models").with_fields(["paperId", "title"])
    ...     )
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
from urllib.parse import quote

import httpx

from scholar_config import DEFAULT_TIMEOUT, S2_BASE_URL, ScholarConfig
from scholar_errors import (
    ConfigurationError,
    NotFoundError,
    TransportError,
    UpstreamError,
    ValidationError,
)
from scholar_filters import BATCH_MAX_IDS, LIST_MAX_LIMIT, SEARCH_MAX_LIMIT, SearchFilter, dedupe
from scholar_models import Author, Citation, Paper, Reference
from scholar_pagination import Page, normalize_page
from scholar_rate_limiter import BATCH, STANDARD, RateLimiter

logger = logging.getLogger(__name__)

Fields = Union[str, Iterable[str]]

_MAX_ERROR_TEXT = 300


def _fields_param(fields: Fields, operation: str) -> str:
    if isinstance(fields, str):
        fields = fields.split(",")
    names = dedupe(fields)
    if not names:
        raise ConfigurationError("field list is empty", operation)
    return ",".join(names)


def _identifier(value: str, operation: str, kind: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{kind} must not be blank", operation)
    return value


def _path_segment(identifier: str) -> str:
    # '#', '?' and spaces must not truncate the id; DOI:/ARXIV:/URL: forms keep ':' and '/'
    return quote(identifier, safe=":/")


def _list_params(fields: Fields, offset: int, limit: int, operation: str, max_limit: int = LIST_MAX_LIMIT) -> Dict[str, str]:
    if not isinstance(offset, int) or offset < 0:
        raise ConfigurationError(f"offset must be a non-negative integer, got {offset!r}", operation)
    if not isinstance(limit, int) or limit < 1:
        raise ConfigurationError(f"limit must be a positive integer, got {limit!r}", operation)
    if limit > max_limit:
        raise ConfigurationError(f"limit {limit} exceeds the service maximum of {max_limit}", operation)
    return {"fields": _fields_param(fields, operation), "offset": str(offset), "limit": str(limit)}


def _upstream_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message"):
            if body.get(key):
                return str(body[key])
    text = response.text.strip()
    if not text:
        return response.reason_phrase or "no response body"
    return text[:_MAX_ERROR_TEXT]


class SemanticScholarClient:
    """Async Semantic Scholar API client.

    Args:
        api_key: Optional API key, sent as ``x-api-key``
        rate_limiter: Shared limiter; pass the same instance to every client
            in the process so limits hold across concurrent callers
        base_url: API root
        timeout: Per-request timeout in seconds
        http_client: Pre-built ``httpx.AsyncClient`` (not closed by this client)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        base_url: str = S2_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key or None
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = http_client
        self._owns_http = http_client is None

    @classmethod
    def from_config(
        cls,
        config: ScholarConfig,
        rate_limiter: Optional[RateLimiter] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "SemanticScholarClient":
        return cls(
            api_key=config.api_key,
            rate_limiter=rate_limiter,
            base_url=config.base_url,
            timeout=config.request_timeout,
            http_client=http_client,
        )

    async def __aenter__(self) -> "SemanticScholarClient":
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    def get_headers(self) -> Dict[str, str]:
        """Get API headers with optional API key."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    async def _request(
        self,
        operation: str,
        method: str,
        endpoint: str,
        channel: str = STANDARD,
        params: Optional[Dict[str, str]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        identifiers: Sequence[str] = (),
    ) -> Any:
        """Make a rate-limited request and return the decoded JSON body."""
        if self._http is None:
            raise RuntimeError("SemanticScholarClient is not open; use it as 'async with' context manager")

        await self.rate_limiter.acquire(channel)

        url = f"{self.base_url}{endpoint}"
        logger.debug("%s: %s %s (%s channel)", operation, method, endpoint, channel)
        try:
            response = await self._http.request(
                method,
                url,
                params=params,
                json=json_data,
                headers=self.get_headers(),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("%s: timed out after %.1fs", operation, self.timeout)
            raise TransportError(
                f"request timed out after {self.timeout:g}s", operation, identifiers
            ) from e
        except httpx.RequestError as e:
            logger.warning("%s: transport failure: %s", operation, e)
            raise TransportError(f"network error: {e}", operation, identifiers) from e

        if not response.is_success:
            message = _upstream_message(response)
            logger.warning("%s: HTTP %d: %s", operation, response.status_code, message)
            if response.status_code == 404 and identifiers:
                raise NotFoundError(message, operation, identifiers, response.status_code)
            raise UpstreamError(message, operation, identifiers, response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                "response body is not valid JSON", operation, identifiers, response.status_code
            ) from e

    def _expect_object(self, body: Any, operation: str, identifiers: Sequence[str] = ()) -> Dict[str, Any]:
        if not isinstance(body, dict):
            raise UpstreamError(
                f"unexpected response format (expected object, got {type(body).__name__})",
                operation,
                identifiers,
            )
        return body

    # =========================================================================
    # PAPERS
    # =========================================================================

    async def search_papers(self, search: SearchFilter) -> Page[Paper]:
        """Relevance search over papers with the filter's criteria."""
        operation = "search_papers"
        try:
            params = search.build(max_limit=SEARCH_MAX_LIMIT)
        except ConfigurationError as e:
            raise ConfigurationError(e.detail, operation) from e
        body = await self._request(operation, "GET", "/paper/search", params=params)
        return normalize_page(self._expect_object(body, operation), search.offset, search.limit)

    async def match_paper(self, search: SearchFilter) -> Paper:
        """Return the single paper whose title best matches ``search.query``.

        Raises:
            NotFoundError: if the API has no match
        """
        operation = "match_paper"
        try:
            params = search.build_match_params()
        except ConfigurationError as e:
            raise ConfigurationError(e.detail, operation) from e
        title = params["query"]
        body = self._expect_object(
            await self._request(operation, "GET", "/paper/search/match", params=params, identifiers=[title]),
            operation,
        )
        matches = body.get("data") or []
        if not matches or not isinstance(matches[0], dict):
            raise NotFoundError("no paper matches this title", operation, [title])
        return matches[0]

    async def get_paper(self, paper_id: str, fields: Fields) -> Paper:
        operation = "get_paper"
        paper_id = _identifier(paper_id, operation, "paper id")
        params = {"fields": _fields_param(fields, operation)}
        body = await self._request(operation, "GET", f"/paper/{_path_segment(paper_id)}", params=params, identifiers=[paper_id])
        return self._expect_object(body, operation, [paper_id])

    async def get_paper_citations(
        self, paper_id: str, fields: Fields, offset: int = 0, limit: int = 100
    ) -> Page[Citation]:
        """Papers citing ``paper_id``; each item holds ``citingPaper``."""
        operation = "get_paper_citations"
        paper_id = _identifier(paper_id, operation, "paper id")
        params = _list_params(fields, offset, limit, operation)
        body = await self._request(
            operation, "GET", f"/paper/{_path_segment(paper_id)}/citations", params=params, identifiers=[paper_id]
        )
        return normalize_page(self._expect_object(body, operation, [paper_id]), offset, limit)

    async def get_paper_references(
        self, paper_id: str, fields: Fields, offset: int = 0, limit: int = 100
    ) -> Page[Reference]:
        """Papers cited by ``paper_id``; each item holds ``citedPaper``."""
        operation = "get_paper_references"
        paper_id = _identifier(paper_id, operation, "paper id")
        params = _list_params(fields, offset, limit, operation)
        body = await self._request(
            operation, "GET", f"/paper/{_path_segment(paper_id)}/references", params=params, identifiers=[paper_id]
        )
        return normalize_page(self._expect_object(body, operation, [paper_id]), offset, limit)

    async def get_papers_batch(self, paper_ids: Sequence[str], fields: Fields) -> List[Optional[Paper]]:
        """Look up 1-500 papers in one request.

        The result is aligned with ``paper_ids``: an id the API cannot
        resolve yields ``None`` at its position.

        Raises:
            ValidationError: if the id count is outside 1-500 or ids is a bare string
        """
        operation = "get_papers_batch"
        if isinstance(paper_ids, str):
            raise ValidationError("paper ids must be a list of ids, not a single string", operation)
        ids = [str(paper_id).strip() for paper_id in paper_ids]
        if not 1 <= len(ids) <= BATCH_MAX_IDS:
            raise ValidationError(
                f"batch lookup takes 1 to {BATCH_MAX_IDS} ids, got {len(ids)}", operation
            )
        if not all(ids):
            raise ValidationError("paper ids must not be blank", operation)
        params = {"fields": _fields_param(fields, operation)}

        body = await self._request(
            operation, "POST", "/paper/batch", channel=BATCH, params=params, json_data={"ids": ids}
        )
        if not isinstance(body, list) or len(body) != len(ids):
            raise UpstreamError(
                f"batch response does not line up with the {len(ids)} requested ids", operation, ids
            )
        return [item if isinstance(item, dict) else None for item in body]

    # =========================================================================
    # AUTHORS
    # =========================================================================

    async def search_authors(self, query: str, fields: Fields, offset: int = 0, limit: int = 10) -> Page[Author]:
        operation = "search_authors"
        query = (query or "").strip()
        if not query:
            raise ConfigurationError("author search query must not be blank", operation)
        params = _list_params(fields, offset, limit, operation)
        params["query"] = query
        body = await self._request(operation, "GET", "/author/search", params=params)
        return normalize_page(self._expect_object(body, operation), offset, limit)

    async def get_author(self, author_id: str, fields: Fields) -> Author:
        operation = "get_author"
        author_id = _identifier(author_id, operation, "author id")
        params = {"fields": _fields_param(fields, operation)}
        body = await self._request(operation, "GET", f"/author/{_path_segment(author_id)}", params=params, identifiers=[author_id])
        return self._expect_object(body, operation, [author_id])

    async def get_author_papers(
        self, author_id: str, fields: Fields, offset: int = 0, limit: int = 100
    ) -> Page[Paper]:
        operation = "get_author_papers"
        author_id = _identifier(author_id, operation, "author id")
        params = _list_params(fields, offset, limit, operation)
        body = await self._request(
            operation, "GET", f"/author/{_path_segment(author_id)}/papers", params=params, identifiers=[author_id]
        )
        return normalize_page(self._expect_object(body, operation, [author_id]), offset, limit)
