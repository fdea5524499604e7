from __future__ import annotations

import enum
import logging
import typing as tp
from dataclasses import dataclass

from ._exceptions import CacheControlError
from ._headers import CacheControl, Headers, parse_cache_control
from ._models import CacheEntry

logger = logging.getLogger("lazycache.freshness")

__all__ = ("FreshnessDecision", "RequestDirectives", "evaluate")


class FreshnessDecision(enum.Enum):
    BYPASS = "bypass"
    """The request is not eligible for caching at all."""

    SERVE_CACHED = "serve_cached"
    """The stored entry satisfies the request as is."""

    SERVE_CACHED_AFTER_REFRESH_TRIGGER = "serve_cached_after_refresh_trigger"
    """The stored entry has expired; serve it and refresh it in the background."""

    REJECT = "reject"
    """Nothing cached may be used for this request."""


@dataclass(frozen=True)
class RequestDirectives:
    no_cache: bool = False
    no_store: bool = False
    max_age: tp.Optional[int] = None
    min_fresh: tp.Optional[int] = None
    max_stale: tp.Optional[int] = None

    @classmethod
    def from_cache_control(cls, cache_control: CacheControl) -> "RequestDirectives":
        # A bare `max-stale` places no bound on staleness, which is the lazy policy.
        max_stale = cache_control.max_stale
        return cls(
            no_cache=bool(cache_control.no_cache),
            no_store=cache_control.no_store,
            max_age=cache_control.max_age,
            min_fresh=cache_control.min_fresh,
            max_stale=max_stale if isinstance(max_stale, int) and not isinstance(max_stale, bool) else None,
        )

    @classmethod
    def from_headers(cls, headers: Headers) -> "RequestDirectives":
        """
        Extracts the directives from the Cache-Control request headers.

        A missing or malformed header yields an empty directive set.
        """
        values = headers.get_list("Cache-Control")
        if not values:
            return cls()

        try:
            cache_control = parse_cache_control(values)
        except CacheControlError as exc:
            logger.debug("Ignoring the malformed Cache-Control header %r: %s", values, exc)
            return cls()
        return cls.from_cache_control(cache_control)


def evaluate(
    directives: RequestDirectives,
    entry: tp.Optional[CacheEntry],
    now: float,
) -> FreshnessDecision:
    """
    Decides whether the stored entry may be used for a request.

    `max-age` and `min-fresh` are demands the client places on the entry's
    age and remaining lifetime; `max-stale` is how far past its expiration
    the client tolerates an entry. An expired entry requested without any
    `max-stale` bound is served anyway, and the caller is told to refresh it.

    Returns:
        FreshnessDecision.SERVE_CACHED: The entry is usable as is.
        FreshnessDecision.SERVE_CACHED_AFTER_REFRESH_TRIGGER: The entry is usable,
            but a background refresh must be started for its key.
        FreshnessDecision.REJECT: The entry must not be used.
    """

    if directives.no_cache:
        logger.debug("Rejecting the cached entry since the request contains the no-cache directive.")
        return FreshnessDecision.REJECT

    # max-age=0 is treated as no-cache
    if directives.max_age == 0:
        logger.debug("Rejecting the cached entry since the request contains max-age=0.")
        return FreshnessDecision.REJECT

    if entry is None:
        logger.debug("Rejecting since there is no cached entry for the request.")
        return FreshnessDecision.REJECT

    if directives.max_age is not None and entry.created + directives.max_age < now:
        logger.debug(
            "Rejecting the cached entry %s since its age exceeds the max-age directive (%s).",
            entry.key,
            directives.max_age,
        )
        return FreshnessDecision.REJECT

    expiration = entry.expiration
    if directives.max_stale is not None:
        expiration += directives.max_stale

    if expiration < now:
        if directives.max_stale is not None:
            logger.debug(
                "Rejecting the cached entry %s since it has expired more than max-stale (%s) ago.",
                entry.key,
                directives.max_stale,
            )
            return FreshnessDecision.REJECT

        logger.debug("Serving the expired entry %s and scheduling its refresh.", entry.key)
        return FreshnessDecision.SERVE_CACHED_AFTER_REFRESH_TRIGGER

    if directives.min_fresh is not None and entry.expiration - directives.min_fresh < now:
        logger.debug(
            "Rejecting the cached entry %s since it will not stay fresh for min-fresh (%s).",
            entry.key,
            directives.min_fresh,
        )
        return FreshnessDecision.REJECT

    logger.debug("Serving the cached entry %s since it is fresh.", entry.key)
    return FreshnessDecision.SERVE_CACHED
