from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, TypedDict
from urllib.parse import parse_qsl, urlsplit

from ._headers import Headers


class RequestMetadata(TypedDict, total=False):
    # All the names here should be prefixed with "lazycache_" to avoid collisions with user data
    lazycache_environ: Dict[str, Any]
    """The WSGI environ the request was built from, when it came through the middleware."""


@dataclass
class Request:
    method: str
    url: str
    headers: Headers = field(default_factory=Headers)
    content: bytes = b""
    metadata: RequestMetadata | Mapping[str, Any] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def query_params(self) -> List[tuple[str, str]]:
        return parse_qsl(urlsplit(self.url).query, keep_blank_values=True)


class ResponseMetadata(TypedDict, total=False):
    # All the names here should be prefixed with "lazycache_" to avoid collisions with user data
    lazycache_from_cache: bool
    """Indicates whether the response was served from cache."""

    lazycache_created_at: float
    """Timestamp when the response was cached."""

    lazycache_stale: bool
    """Indicates whether the response was past its expiration when served."""


@dataclass
class Response:
    status_code: int
    headers: Headers = field(default_factory=Headers)
    content: bytes = b""
    metadata: ResponseMetadata | Mapping[str, Any] = field(default_factory=dict)

    @property
    def from_cache(self) -> bool:
        return bool(self.metadata.get("lazycache_from_cache", False))


@dataclass
class CacheableResponse(Response):
    """
    A response that asks to be cached until `expiration`.

    Handlers return it instead of a plain `Response` to opt into caching.
    `expiration` is required. `created` is the point in time the content was
    produced and becomes the entry's creation time; when it is None the
    cache stamps the entry with its own clock.
    """

    expiration: Optional[float] = None
    created: Optional[float] = None

    def __post_init__(self) -> None:
        if self.expiration is None:
            raise ValueError("CacheableResponse requires an expiration timestamp.")

    @classmethod
    def wrap(cls, response: Response, expiration: float, created: Optional[float] = None) -> "CacheableResponse":
        return cls(
            status_code=response.status_code,
            headers=response.headers,
            content=response.content,
            metadata=response.metadata,
            expiration=expiration,
            created=created,
        )


@dataclass(frozen=True)
class CacheEntry:
    key: str
    response: Response
    created: float
    expiration: float


def clone_response(response: Response, **metadata: Any) -> Response:
    """
    Copies a response into a plain `Response`, dropping the cacheable wrapper
    and any metadata that is not passed explicitly.
    """
    return Response(
        status_code=response.status_code,
        headers=response.headers.copy(),
        content=response.content,
        metadata=metadata,
    )
