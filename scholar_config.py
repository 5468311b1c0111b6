"""Environment configuration for the Semantic Scholar MCP server."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from scholar_errors import ConfigurationError

S2_BASE_URL = "https://api.semanticscholar.org/graph/v1"
DEFAULT_TIMEOUT = 30.0

RATE_TIERS = ("authenticated", "unauthenticated")

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ScholarConfig:
    api_key: Optional[str] = None
    rate_tier: str = "unauthenticated"
    request_timeout: float = DEFAULT_TIMEOUT
    base_url: str = S2_BASE_URL
    debug: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ScholarConfig":
        """Read configuration from environment variables.

        SEMANTIC_SCHOLAR_API_KEY (or S2_API_KEY) is optional; without it the
        API's shared unauthenticated tier applies.
        """
        env = os.environ if environ is None else environ

        api_key = (env.get("SEMANTIC_SCHOLAR_API_KEY") or env.get("S2_API_KEY") or "").strip() or None

        rate_tier = env.get("S2_RATE_TIER", "").strip().lower()
        if not rate_tier:
            rate_tier = "authenticated" if api_key else "unauthenticated"
        elif rate_tier not in RATE_TIERS:
            raise ConfigurationError(
                f"S2_RATE_TIER must be one of {', '.join(RATE_TIERS)}, got {rate_tier!r}"
            )

        raw_timeout = env.get("S2_REQUEST_TIMEOUT", "").strip()
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
        except ValueError:
            raise ConfigurationError(f"S2_REQUEST_TIMEOUT must be a number, got {raw_timeout!r}") from None
        if timeout <= 0:
            raise ConfigurationError(f"S2_REQUEST_TIMEOUT must be positive, got {raw_timeout!r}")

        return cls(
            api_key=api_key,
            rate_tier=rate_tier,
            request_timeout=timeout,
            base_url=(env.get("S2_BASE_URL") or S2_BASE_URL).rstrip("/"),
            debug=env.get("DEBUG", "").strip().lower() in _TRUTHY,
        )
