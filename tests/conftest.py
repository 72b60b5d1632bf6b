"""Shared HTTP doubles for the client tests."""

from __future__ import annotations

import json
from collections import deque
from typing import Any, Iterable

import pytest


class FakeResponse:
    def __init__(
        self,
        *,
        status: int = 200,
        body: str | bytes = "",
        headers: dict[str, str] | None = None,
        reason: str = "OK",
    ) -> None:
        self.status = status
        self.reason = reason
        self._body = body
        self._headers = headers or {}

    @property
    def headers(self) -> dict[str, str]:
        return self._headers

    async def text(self, encoding: str | None = None, errors: str = "strict") -> str:
        # strict by default, like aiohttp.ClientResponse.text
        if isinstance(self._body, bytes):
            return self._body.decode(encoding or "utf-8", errors=errors)
        return self._body

    async def read(self) -> bytes:
        if isinstance(self._body, bytes):
            return self._body
        return self._body.encode("utf-8")

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, _exc_type, _exc, _tb) -> None:
        return None


class FakeSession:
    """Replays canned responses (or raises canned exceptions) in order."""

    def __init__(self, outcomes: Iterable[Any]) -> None:
        self._outcomes = deque(outcomes)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs: Any) -> Any:
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self._outcomes:
            raise RuntimeError("No more responses configured")
        result = self._outcomes.popleft()
        if isinstance(result, BaseException):
            raise result
        return result

    async def close(self) -> None:
        self.closed = True


def envelope(model: Any = None, errors: list | None = None, messages: list | None = None) -> FakeResponse:
    body = {"model": model, "errors": errors or [], "messages": messages or []}
    return FakeResponse(body=json.dumps(body), headers={"Content-Type": "application/json"})


@pytest.fixture
def make_session():
    return FakeSession


@pytest.fixture
def make_envelope():
    return envelope


@pytest.fixture
def make_response():
    return FakeResponse


BASE_URL = "https://labbcat.example.org/demo/"


@pytest.fixture
def base_url() -> str:
    return BASE_URL
