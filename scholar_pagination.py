"""Uniform page shape for list-returning endpoints."""

from dataclasses import dataclass, field
from typing import Any, Generic, List, Mapping, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One slice of a larger result set.

    ``total`` is the upstream-reported count and is ``None`` when the
    endpoint does not report one (citations, references, author papers).
    ``next`` is the offset of the following page, or ``None`` when there is
    nothing more to fetch.
    """

    data: List[T] = field(default_factory=list)
    total: Optional[int] = None
    offset: int = 0
    next: Optional[int] = None

    @property
    def has_more(self) -> bool:
        return self.next is not None


def normalize_page(raw: Union[Mapping[str, Any], Page], offset: int, limit: int) -> Page:
    """Shape a raw list response into a ``Page``.

    ``next`` is ``offset + len(data)`` when the reported total says more
    results exist, or, when no total is reported, when a full page came
    back. Passing an already-normalized ``Page`` returns it unchanged.
    """
    if isinstance(raw, Page):
        return raw

    data = list(raw.get("data") or [])
    total = raw.get("total")
    if total is not None:
        total = max(int(total), 0)

    end = offset + len(data)
    if total is not None:
        more = end < total
    else:
        more = len(data) > 0 and len(data) >= limit

    return Page(data=data, total=total, offset=offset, next=end if more else None)
