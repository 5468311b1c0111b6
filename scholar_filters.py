"""
Search filter builder for the Semantic Scholar paper search grammar.

A ``SearchFilter`` is an immutable value: every ``with_*`` method returns a
new filter, so a filter can be reused or branched without aliasing. Nothing
is validated while chaining; all checks happen in ``build()`` /
``build_match_params()``, which raise ``ConfigurationError``.

    >>> params = (
    ...     SearchFilter("graph neural networks")
    ...     .with_fields(["paperId", "title", "year"])
    ...     .with_year_range(2019, None)
    ...     .with_min_citations(50)
    ...     .with_pagination(0, 20)
    ...     .build()
    ... )
    >>> params["year"]
    '2019-'
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterable, Mapping, Optional, Tuple

from scholar_errors import ConfigurationError
from scholar_models import FIELDS_OF_STUDY, PUBLICATION_TYPES, SORT_KEYS, SORT_ORDERS

# Substituted for a blank query when only structural criteria are given.
WILDCARD_QUERY = "*"

SEARCH_MAX_LIMIT = 100
BATCH_MAX_IDS = 500
LIST_MAX_LIMIT = 1000

DEFAULT_LIMIT = 10


def dedupe(values: Iterable[str]) -> Tuple[str, ...]:
    seen = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.append(value)
    return tuple(seen)


def _split(value: str) -> Tuple[str, ...]:
    return dedupe(value.split(","))


@dataclass(frozen=True)
class SearchFilter:
    query: str = ""
    fields: Tuple[str, ...] = ()
    offset: int = 0
    limit: int = DEFAULT_LIMIT
    year_range: Optional[Tuple[Optional[int], Optional[int]]] = None
    min_citations: Optional[int] = None
    open_access_only: bool = False
    fields_of_study: Optional[Tuple[str, ...]] = None
    publication_types: Optional[Tuple[str, ...]] = None
    venues: Optional[Tuple[str, ...]] = None
    sort: Optional[Tuple[str, str]] = None

    # -------------------------------------------------------------------------
    # Configuration (each call replaces one criterion)
    # -------------------------------------------------------------------------

    def with_query(self, text: str) -> "SearchFilter":
        return replace(self, query=text)

    def with_fields(self, fields: Iterable[str]) -> "SearchFilter":
        """Set the exact attribute projection. Duplicates are dropped, order kept."""
        return replace(self, fields=dedupe(fields))

    def with_pagination(self, offset: int, limit: int) -> "SearchFilter":
        """Store offset/limit verbatim; the limit ceiling is checked at build time."""
        return replace(self, offset=offset, limit=limit)

    def with_year_range(self, start: Optional[int] = None, end: Optional[int] = None) -> "SearchFilter":
        if start is None and end is None:
            return replace(self, year_range=None)
        return replace(self, year_range=(start, end))

    def with_min_citations(self, count: int) -> "SearchFilter":
        return replace(self, min_citations=count)

    def with_open_access_only(self, enabled: bool = True) -> "SearchFilter":
        return replace(self, open_access_only=enabled)

    def with_fields_of_study(self, fields_of_study: Iterable[str]) -> "SearchFilter":
        return replace(self, fields_of_study=dedupe(fields_of_study) or None)

    def with_publication_types(self, publication_types: Iterable[str]) -> "SearchFilter":
        return replace(self, publication_types=dedupe(publication_types) or None)

    def with_venues(self, venues: Iterable[str]) -> "SearchFilter":
        return replace(self, venues=dedupe(venues) or None)

    def with_sort(self, key: str, order: str = "desc") -> "SearchFilter":
        return replace(self, sort=(key, order))

    @property
    def has_structural_criteria(self) -> bool:
        return bool(
            self.year_range
            or self.min_citations is not None
            or self.open_access_only
            or self.fields_of_study
            or self.publication_types
            or self.venues
        )

    # -------------------------------------------------------------------------
    # Compilation
    # -------------------------------------------------------------------------

    def build(self, max_limit: int = SEARCH_MAX_LIMIT) -> Dict[str, str]:
        """Compile into query parameters for a paginated search.

        Args:
            max_limit: Service ceiling for ``limit`` on the target endpoint

        Returns:
            Parameter dict ready to pass to the HTTP client

        Raises:
            ConfigurationError: if the accumulated state is invalid
        """
        params = {"query": self._compiled_query()}
        params.update(self._compiled_fields())

        if not isinstance(self.offset, int) or self.offset < 0:
            raise ConfigurationError(f"offset must be a non-negative integer, got {self.offset!r}")
        if not isinstance(self.limit, int) or self.limit < 1:
            raise ConfigurationError(f"limit must be a positive integer, got {self.limit!r}")
        if self.limit > max_limit:
            raise ConfigurationError(f"limit {self.limit} exceeds the service maximum of {max_limit}")
        params["offset"] = str(self.offset)
        params["limit"] = str(self.limit)

        params.update(self._compiled_criteria())

        if self.sort is not None:
            key, order = self.sort
            if key not in SORT_KEYS:
                raise ConfigurationError(f"sort key must be one of {', '.join(SORT_KEYS)}, got {key!r}")
            if order not in SORT_ORDERS:
                raise ConfigurationError(f"sort order must be 'asc' or 'desc', got {order!r}")
            params["sort"] = f"{key}:{order}"

        return params

    def build_match_params(self) -> Dict[str, str]:
        """Compile into parameters for the single-best title match.

        Pagination and sort are omitted. Any structural criteria that were
        set are included so they narrow the match.
        """
        if not self.query.strip():
            raise ConfigurationError("a title is required for title matching")
        params = {"query": self.query.strip()}
        params.update(self._compiled_fields())
        params.update(self._compiled_criteria())
        return params

    def _compiled_query(self) -> str:
        text = self.query.strip()
        if text:
            return text
        if not self.has_structural_criteria:
            raise ConfigurationError(
                "query is empty; provide search text or at least one structural filter "
                "(year range, minimum citations, open access, fields of study, publication types, venue)"
            )
        return WILDCARD_QUERY

    def _compiled_fields(self) -> Dict[str, str]:
        if not self.fields:
            raise ConfigurationError("field list is empty; request at least an id field and a display field")
        return {"fields": ",".join(self.fields)}

    def _compiled_criteria(self) -> Dict[str, str]:
        params = {}

        if self.year_range is not None:
            start, end = self.year_range
            for year in (start, end):
                if year is not None and (not isinstance(year, int) or year < 0):
                    raise ConfigurationError(f"year must be a non-negative integer, got {year!r}")
            if start is not None and end is not None and start > end:
                raise ConfigurationError(f"year range start {start} is after end {end}")
            params["year"] = f"{'' if start is None else start}-{'' if end is None else end}"

        if self.min_citations is not None:
            if not isinstance(self.min_citations, int) or self.min_citations < 0:
                raise ConfigurationError(
                    f"minimum citations must be a non-negative integer, got {self.min_citations!r}"
                )
            params["minCitationCount"] = str(self.min_citations)

        if self.open_access_only:
            params["openAccessPdf"] = ""

        if self.fields_of_study:
            unknown = [f for f in self.fields_of_study if f not in FIELDS_OF_STUDY]
            if unknown:
                raise ConfigurationError(f"unknown field(s) of study: {', '.join(unknown)}")
            params["fieldsOfStudy"] = ",".join(self.fields_of_study)

        if self.publication_types:
            unknown = [t for t in self.publication_types if t not in PUBLICATION_TYPES]
            if unknown:
                raise ConfigurationError(f"unknown publication type(s): {', '.join(unknown)}")
            params["publicationTypes"] = ",".join(self.publication_types)

        if self.venues:
            params["venue"] = ",".join(self.venues)

        return params

    # -------------------------------------------------------------------------
    # Parsing
    # -------------------------------------------------------------------------

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "SearchFilter":
        """Rebuild a filter from compiled parameters (inverse of ``build``)."""
        search = cls()
        query = params.get("query", "")
        search = search.with_query("" if query == WILDCARD_QUERY else query)
        if params.get("fields"):
            search = search.with_fields(_split(params["fields"]))
        if "offset" in params or "limit" in params:
            search = search.with_pagination(
                int(params.get("offset", 0)), int(params.get("limit", DEFAULT_LIMIT))
            )
        if params.get("year"):
            start, sep, end = params["year"].partition("-")
            if not sep:
                end = start
            search = search.with_year_range(int(start) if start else None, int(end) if end else None)
        if "minCitationCount" in params:
            search = search.with_min_citations(int(params["minCitationCount"]))
        if "openAccessPdf" in params:
            search = search.with_open_access_only()
        if params.get("fieldsOfStudy"):
            search = search.with_fields_of_study(_split(params["fieldsOfStudy"]))
        if params.get("publicationTypes"):
            search = search.with_publication_types(_split(params["publicationTypes"]))
        if params.get("venue"):
            search = search.with_venues(_split(params["venue"]))
        if params.get("sort"):
            key, _, order = params["sort"].partition(":")
            search = search.with_sort(key, order or "desc")
        return search
