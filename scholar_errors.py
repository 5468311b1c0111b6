"""
Error taxonomy for the Semantic Scholar client.

Every error carries the operation that raised it, the identifier(s) involved
and, for upstream failures, the HTTP status and message, so it can be shown
to the user as-is.
"""

from typing import Iterable, Optional


class ScholarError(Exception):
    """Base class for all client errors."""

    def __init__(
        self,
        detail: str,
        operation: Optional[str] = None,
        identifiers: Iterable[str] = (),
        status_code: Optional[int] = None,
    ):
        self.detail = detail
        self.operation = operation
        self.identifiers = tuple(identifiers)
        self.status_code = status_code
        super().__init__(self._render())

    def _render(self) -> str:
        parts = []
        if self.operation:
            parts.append(f"[{self.operation}]")
        if self.status_code is not None:
            parts.append(f"HTTP {self.status_code}:")
        parts.append(self.detail)
        if self.identifiers:
            shown = ", ".join(self.identifiers[:5])
            if len(self.identifiers) > 5:
                shown += f" (+{len(self.identifiers) - 5} more)"
            parts.append(f"(ids: {shown})")
        return " ".join(parts)


class ConfigurationError(ScholarError):
    """Invalid filter or caller-supplied value. Never reaches the network."""


class ValidationError(ConfigurationError):
    """Caller input rejected before dispatch (e.g. batch size out of range)."""


class TransportError(ScholarError):
    """Network failure or timeout before any response was received."""


class UpstreamError(ScholarError):
    """Non-2xx (or undecodable) response from the API."""

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class NotFoundError(UpstreamError):
    """A specific identifier could not be resolved by the API."""
