from __future__ import annotations

import logging
import typing as tp
from dataclasses import dataclass

from ._exceptions import ExpirationError
from ._freshness import FreshnessDecision, RequestDirectives, evaluate
from ._keygen import BaseKeyGenerator, DefaultKeyGenerator
from ._models import CacheableResponse, CacheEntry, Request, Response, clone_response
from ._refresh import RefreshCoordinator, RequestExecutor
from ._storages import BaseStorage, InMemoryStorage
from ._utils import BaseClock, Clock, generate_http_date, parse_expiration

logger = logging.getLogger("lazycache.cache")

__all__ = ("CacheOptions", "LazyCache", "Lookup", "PreRequirements", "set_expiration_header")

PreRequirements = tp.Callable[[Request], tp.Optional[Response]]

DEFAULT_EXPIRES_HEADER = "X-Lazycache-Expires"


@dataclass
class CacheOptions:
    success_status_codes: tp.Tuple[int, ...] = (200,)
    """Responses with any other status are never stored, and remove the stored entry instead."""

    expires_header: str = DEFAULT_EXPIRES_HEADER
    """Name of the response header through which handlers opt into caching."""

    refresh_workers: int = 4
    """Number of worker threads running background refreshes."""

    serialize_refreshes: bool = False
    """Run at most one background refresh at a time in the whole process."""


@dataclass(frozen=True)
class Lookup:
    decision: FreshnessDecision
    key: str
    entry: tp.Optional[CacheEntry] = None


def set_expiration_header(
    response: Response,
    expiration: float,
    header: str = DEFAULT_EXPIRES_HEADER,
) -> Response:
    """Marks the response as cacheable until `expiration` through the side-channel header."""
    response.headers[header] = generate_http_date(expiration)
    return response


class LazyCache:
    """
    Serves responses from a storage and keeps it filled.

    The host calls `on_request` before its handler runs and `on_response`
    after it. Expired entries are served as they are while a single
    background refresh per key brings them up to date.

    Args:
        storage: Where the entries live. Defaults to InMemoryStorage.
        key_generator: Maps requests to cache keys. Defaults to DefaultKeyGenerator.
        executor: Runs a request through the full host pipeline; required for
            background refreshes. Hosts such as `WSGICacheMiddleware` install
            themselves when it is not given.
        pre_requirements: Authentication or validation that must approve every
            request before a cached response is released.
        options: Tunables, see `CacheOptions`.
        clock: The time source used for freshness decisions and for stamping new entries.
    """

    def __init__(
        self,
        storage: tp.Optional[BaseStorage] = None,
        key_generator: tp.Optional[BaseKeyGenerator] = None,
        executor: tp.Optional[RequestExecutor] = None,
        pre_requirements: tp.Optional[PreRequirements] = None,
        options: tp.Optional[CacheOptions] = None,
        clock: tp.Optional[BaseClock] = None,
    ) -> None:
        self.options = options or CacheOptions()
        self._clock = clock or Clock()
        self.storage = storage if storage is not None else InMemoryStorage(clock=self._clock)
        self.key_generator = key_generator or DefaultKeyGenerator()
        self.pre_requirements = pre_requirements
        self._refresher: tp.Optional[RefreshCoordinator] = None

        if executor is not None:
            self.set_executor(executor)

        logger.info(
            "Initialized LazyCache with storage=%s, key_generator=%s",
            type(self.storage).__name__,
            type(self.key_generator).__name__,
        )

    @property
    def refresher(self) -> tp.Optional[RefreshCoordinator]:
        return self._refresher

    def set_executor(self, executor: RequestExecutor) -> None:
        if self._refresher is not None:
            raise RuntimeError("A request executor is already installed.")
        self._refresher = RefreshCoordinator(
            storage=self.storage,
            executor=executor,
            success_status_codes=self.options.success_status_codes,
            max_workers=self.options.refresh_workers,
            serialize_refreshes=self.options.serialize_refreshes,
        )

    def lookup(self, request: Request, *, cache_disabled: bool = False) -> Lookup:
        """Finds the entry for the request and decides whether it may be used."""
        if cache_disabled:
            return Lookup(FreshnessDecision.BYPASS, key="")

        directives = RequestDirectives.from_headers(request.headers)

        key = self.key_generator.get(request)
        if not key:
            logger.debug("Bypassing the cache for %s %s since it has no cache key.", request.method, request.url)
            return Lookup(FreshnessDecision.BYPASS, key="")

        # no-cache and max-age=0 reject without a storage round trip
        if directives.no_cache or directives.max_age == 0:
            return Lookup(evaluate(directives, None, self._clock.now()), key=key)

        entry = self.storage.get(key)
        return Lookup(evaluate(directives, entry, self._clock.now()), key=key, entry=entry)

    def on_request(self, request: Request, *, cache_disabled: bool = False) -> tp.Optional[Response]:
        """
        Returns a cached response for the request, or None to let the handler run.

        `cache_disabled` is set when the request is a background refresh, which
        must always reach the handler.
        """
        lookup = self.lookup(request, cache_disabled=cache_disabled)

        if lookup.decision is FreshnessDecision.SERVE_CACHED_AFTER_REFRESH_TRIGGER:
            if self._refresher is None:
                logger.warning(
                    "Serving the expired entry %s without refreshing it since no request executor is installed.",
                    lookup.key,
                )
            else:
                # The refresh is scheduled for every stale hit, including ones the
                # pre-requirements reject below.
                self._refresher.trigger(lookup.key, request)
        elif lookup.decision is not FreshnessDecision.SERVE_CACHED:
            return None

        assert lookup.entry is not None

        # Cached entries are only released to requests that pass the pre-requirements.
        if self.pre_requirements is not None:
            pre_response = self.pre_requirements(request)
            if pre_response is not None:
                logger.debug(
                    "Withholding the cached entry %s since the pre-requirements responded with status %d.",
                    lookup.key,
                    pre_response.status_code,
                )
                return pre_response

        return clone_response(
            lookup.entry.response,
            lazycache_from_cache=True,
            lazycache_created_at=lookup.entry.created,
            lazycache_stale=lookup.decision is FreshnessDecision.SERVE_CACHED_AFTER_REFRESH_TRIGGER,
        )

    def on_response(self, request: Request, response: Response) -> None:
        """Stores the response if the handler marked it as cacheable."""
        if response.from_cache:
            return

        header_value = response.headers.get(self.options.expires_header)
        if header_value is not None:
            del response.headers[self.options.expires_header]

        directives = RequestDirectives.from_headers(request.headers)
        if directives.no_store:
            logger.debug("Not storing the response for %s since the request contains no-store.", request.url)
            return

        key = self.key_generator.get(request)
        if not key:
            return

        expiration: tp.Optional[float]
        created: tp.Optional[float] = None
        if isinstance(response, CacheableResponse):
            expiration = response.expiration
            created = response.created
        elif header_value is not None:
            try:
                expiration = parse_expiration(header_value)
            except ExpirationError as exc:
                logger.warning("Not storing the response for %s: %s", request.url, exc)
                return
        else:
            return

        if response.status_code not in self.options.success_status_codes:
            logger.debug(
                "Removing the entry %s since the handler responded with status %d.",
                key,
                response.status_code,
            )
            self.storage.remove(key)
            return

        assert expiration is not None
        # Entries are stamped with the same clock that judges their freshness.
        self.storage.set(key, response, expiration, created=self._clock.now() if created is None else created)

    def close(self) -> None:
        if self._refresher is not None:
            self._refresher.close()
        self.storage.close()

    def __enter__(self) -> "LazyCache":
        return self

    def __exit__(self, *args: tp.Any) -> None:
        self.close()
