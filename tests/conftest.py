"""Shared fixtures: a fake Semantic Scholar API behind httpx.MockTransport."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest_asyncio

from scholar_client import SemanticScholarClient
from scholar_rate_limiter import BATCH, STANDARD, RateLimiter

API_PREFIX = "/graph/v1"


class RecordingLimiter(RateLimiter):
    """Zero-interval limiter that remembers which channels were used."""

    def __init__(self) -> None:
        super().__init__({STANDARD: 0.0, BATCH: 0.0})
        self.acquired: list[str] = []

    async def acquire(self, channel: str = STANDARD) -> float:
        self.acquired.append(channel)
        return await super().acquire(channel)


class FakeAPI:
    """Routes requests by (method, path) to canned responses or exceptions."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []
        self.limiter = RecordingLimiter()
        self.client: SemanticScholarClient | None = None

    def add(self, method: str, path: str, status: int = 200, body: Any = None, raises: Exception | None = None) -> None:
        self.routes[(method, API_PREFIX + path)] = (status, body, raises)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "Not found"})
        status, body, raises = route
        if raises is not None:
            raise raises
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


@pytest_asyncio.fixture
async def api():
    fake = FakeAPI()
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake.handler)) as http:
        fake.client = SemanticScholarClient(
            api_key="test-key",
            rate_limiter=fake.limiter,
            http_client=http,
        )
        async with fake.client:
            yield fake
