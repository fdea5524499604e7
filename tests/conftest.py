from __future__ import annotations

import typing as tp

import pytest

from lazycache import BaseClock, CacheEntry, Headers, Request, Response

T0 = 1_700_000_000.0


class FrozenClock(BaseClock):
    def __init__(self, now: float = T0) -> None:
        self.current = now

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


def create_request(
    method: str = "GET",
    url: str = "https://example.com/resource",
    headers: tp.Optional[tp.Dict[str, str]] = None,
) -> Request:
    return Request(method=method, url=url, headers=Headers(headers or {}))


def create_response(
    status_code: int = 200,
    content: bytes = b"payload",
    headers: tp.Optional[tp.Dict[str, str]] = None,
) -> Response:
    return Response(status_code=status_code, headers=Headers(headers or {}), content=content)


def create_entry(
    created: float = T0,
    expiration: float = T0 + 60,
    content: bytes = b"payload",
    key: str = "key",
) -> CacheEntry:
    return CacheEntry(key=key, response=create_response(content=content), created=created, expiration=expiration)
