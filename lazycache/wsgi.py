from __future__ import annotations

import io
import logging
import sys
import typing as t
from http import HTTPStatus
from urllib.parse import urlsplit
from wsgiref.util import request_uri

from ._cache import LazyCache, PreRequirements
from ._headers import Headers
from ._models import Request, Response

logger = logging.getLogger("lazycache.wsgi")

__all__ = ("WSGICacheMiddleware",)

_Environ = t.Dict[str, t.Any]
_StartResponse = t.Callable[..., t.Callable[[bytes], t.Any]]
_WSGIApp = t.Callable[[_Environ, _StartResponse], t.Iterable[bytes]]


class WSGICacheMiddleware:
    """
    WSGI middleware that serves responses from a `LazyCache`.

    Every request first goes through `LazyCache.on_request`; a cached response
    short-circuits the wrapped application. Otherwise the application runs, its
    response is buffered and handed to `LazyCache.on_response` before it is
    sent.

    Applications opt into caching by setting the expiration header (see
    `set_expiration_header`); the header never reaches the client.

    The middleware installs itself as the cache's request executor, so
    background refreshes re-run the whole pipeline with the cache disabled
    and their responses are stored like any other.

    Args:
        app: The WSGI application to wrap.
        cache: The cache to use. Defaults to a LazyCache with in-memory storage.
        pre_requirements: Authentication or validation that must approve a
            request before a cached response is released.

    Example:
        ```python
        from lazycache import LazyCache, InMemoryStorage
        from lazycache.wsgi import WSGICacheMiddleware

        app = WSGICacheMiddleware(
            app=my_wsgi_app,
            cache=LazyCache(storage=InMemoryStorage()),
        )
        ```
    """

    def __init__(
        self,
        app: _WSGIApp,
        cache: t.Optional[LazyCache] = None,
        pre_requirements: t.Optional[PreRequirements] = None,
    ) -> None:
        self.app = app
        self.cache = cache if cache is not None else LazyCache()

        if pre_requirements is not None:
            self.cache.pre_requirements = pre_requirements
        if self.cache.refresher is None:
            self.cache.set_executor(self.handle)

        logger.info(
            "Initialized WSGICacheMiddleware with storage=%s",
            type(self.cache.storage).__name__,
        )

    def __call__(self, environ: _Environ, start_response: _StartResponse) -> t.Iterable[bytes]:
        request = self._environ_to_request(environ)
        logger.debug("Incoming HTTP request: method=%s url=%s", request.method, request.url)

        response = self.handle(request)

        start_response(
            self._status_line(response.status_code),
            [(key, value) for key, value in response.headers.multi_items()],
        )
        logger.debug(
            "Response sent: status=%d from_cache=%s",
            response.status_code,
            response.from_cache,
        )
        return [response.content]

    def handle(self, request: Request, *, cache_disabled: bool = False) -> Response:
        """
        Runs a request through the whole pipeline: cache lookup, application, cache commit.
        """
        cached = self.cache.on_request(request, cache_disabled=cache_disabled)
        if cached is not None:
            return cached

        response = self._call_app(request)
        self.cache.on_response(request, response)
        return response

    def close(self) -> None:
        """Wait for background refreshes and close the storage backend."""
        logger.info("Closing WSGICacheMiddleware")
        self.cache.close()

    def _call_app(self, request: Request) -> Response:
        environ = self._request_to_environ(request)

        status_code = 500
        response_headers = Headers()
        body_chunks: t.List[bytes] = []

        def start_response(
            status: str,
            headers: t.List[t.Tuple[str, str]],
            exc_info: t.Any = None,
        ) -> t.Callable[[bytes], None]:
            nonlocal status_code, response_headers
            # Nothing has been sent yet, so a late start_response simply wins.
            status_code = int(status.split(" ", 1)[0])
            response_headers = Headers()
            for key, value in headers:
                response_headers.add(key, value)
            return body_chunks.append

        app_iter = self.app(environ, start_response)
        try:
            for chunk in app_iter:
                if chunk:
                    body_chunks.append(chunk)
        finally:
            close = getattr(app_iter, "close", None)
            if close is not None:
                close()

        logger.debug(
            "Application response complete: status=%d total_bytes=%d",
            status_code,
            sum(len(chunk) for chunk in body_chunks),
        )
        return Response(status_code=status_code, headers=response_headers, content=b"".join(body_chunks))

    def _environ_to_request(self, environ: _Environ) -> Request:
        headers = Headers()
        for key, value in environ.items():
            if key.startswith("HTTP_"):
                headers.add(key[5:].replace("_", "-").title(), value)
        for key in ("CONTENT_TYPE", "CONTENT_LENGTH"):
            if environ.get(key):
                headers[key.replace("_", "-").title()] = environ[key]

        try:
            content_length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            content_length = 0
        content = environ["wsgi.input"].read(content_length) if content_length > 0 else b""

        return Request(
            method=environ.get("REQUEST_METHOD", "GET"),
            url=request_uri(environ, include_query=True),
            headers=headers,
            content=content,
            metadata={"lazycache_environ": environ},
        )

    def _request_to_environ(self, request: Request) -> _Environ:
        original = request.metadata.get("lazycache_environ")
        if original is not None:
            environ = dict(original)
        else:
            url = urlsplit(request.url)
            scheme = url.scheme or "http"
            environ = {
                "SCRIPT_NAME": "",
                "SERVER_NAME": url.hostname or "localhost",
                "SERVER_PORT": str(url.port or (443 if scheme == "https" else 80)),
                "SERVER_PROTOCOL": "HTTP/1.1",
                "PATH_INFO": url.path or "/",
                "QUERY_STRING": url.query,
                "wsgi.version": (1, 0),
                "wsgi.url_scheme": scheme,
                "wsgi.errors": sys.stderr,
                "wsgi.multithread": True,
                "wsgi.multiprocess": False,
                "wsgi.run_once": False,
            }
            for key, value in request.headers.items():
                name = key.upper().replace("-", "_")
                if name not in ("CONTENT_TYPE", "CONTENT_LENGTH"):
                    name = "HTTP_" + name
                environ[name] = value

        environ["REQUEST_METHOD"] = request.method
        environ["CONTENT_LENGTH"] = str(len(request.content))
        environ["wsgi.input"] = io.BytesIO(request.content)
        return environ

    @staticmethod
    def _status_line(status_code: int) -> str:
        try:
            phrase = HTTPStatus(status_code).phrase
        except ValueError:
            phrase = ""
        return f"{status_code} {phrase}".rstrip()
