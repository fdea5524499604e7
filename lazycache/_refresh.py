from __future__ import annotations

import logging
import threading
import typing as tp
from concurrent.futures import Future, ThreadPoolExecutor, wait

from ._models import Request, Response
from ._storages import BaseStorage
from ._synchronization import Lock, NullLock

logger = logging.getLogger("lazycache.refresh")

__all__ = ("RefreshCoordinator", "RequestExecutor")


class RequestExecutor(tp.Protocol):
    def __call__(self, request: Request, *, cache_disabled: bool = ...) -> Response: ...


class RefreshCoordinator:
    """
    Re-executes requests in the background to refresh expired entries.

    At most one refresh per key is in flight at any time: a trigger for a key
    that is already being refreshed is dropped. Refreshes of different keys
    run concurrently on a bounded pool of worker threads, unless
    `serialize_refreshes` is set, in which case a single lock makes every
    refresh in the process run one after another.

    A refresh re-runs the whole request pipeline with the cache disabled, so a
    successful response is stored by the pipeline itself. A non-success
    response or an exception removes the stored entry instead.

    :param storage: The storage holding the entries being refreshed
    :type storage: BaseStorage
    :param executor: Runs a request through the full pipeline
    :type executor: RequestExecutor
    :param success_status_codes: Status codes that count as a successful refresh, defaults to (200,)
    :type success_status_codes: tp.Collection[int], optional
    :param max_workers: Size of the worker pool, defaults to 4
    :type max_workers: int, optional
    :param serialize_refreshes: Run at most one refresh at a time process-wide, defaults to False
    :type serialize_refreshes: bool, optional
    """

    def __init__(
        self,
        storage: BaseStorage,
        executor: RequestExecutor,
        success_status_codes: tp.Collection[int] = (200,),
        max_workers: int = 4,
        serialize_refreshes: bool = False,
    ) -> None:
        if max_workers <= 0:
            raise ValueError("max_workers must be positive")

        self._storage = storage
        self._executor = executor
        self._success_status_codes = tuple(success_status_codes)
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="lazycache-refresh")
        self._in_flight: tp.Set[str] = set()
        self._futures: tp.Set[Future[None]] = set()
        self._lock = threading.Lock()
        self._refresh_lock: tp.Union[Lock, NullLock] = Lock() if serialize_refreshes else NullLock()

    def is_refreshing(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    def trigger(self, key: str, request: Request) -> bool:
        """
        Schedules a background refresh of `key` by re-executing `request`.

        Returns False without scheduling anything when a refresh for the key
        is already in flight.
        """
        with self._lock:
            if key in self._in_flight:
                logger.debug("Skipping the refresh of %s since one is already in flight.", key)
                return False
            self._in_flight.add(key)

        try:
            future = self._pool.submit(self._refresh, key, request)
        except RuntimeError:
            self._release(key)
            logger.warning("Could not schedule the refresh of %s since the refresh pool is shut down.", key)
            return False

        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._forget)
        logger.debug("Scheduled the refresh of %s.", key)
        return True

    def wait(self, timeout: tp.Optional[float] = None) -> None:
        """Blocks until every refresh scheduled so far has finished."""
        with self._lock:
            futures = list(self._futures)
        wait(futures, timeout=timeout)

    def close(self) -> None:
        logger.info("Shutting down the refresh pool")
        self._pool.shutdown(wait=True)

    def _refresh(self, key: str, request: Request) -> None:
        try:
            with self._refresh_lock:
                logger.debug("Refreshing %s by re-executing %s %s.", key, request.method, request.url)
                response = self._executor(request, cache_disabled=True)

                if response.status_code not in self._success_status_codes:
                    logger.info(
                        "Removing the entry %s since its refresh responded with status %d.",
                        key,
                        response.status_code,
                    )
                    self._storage.remove(key)
                else:
                    logger.debug("Refreshed %s.", key)
        except Exception:
            logger.error("Removing the entry %s since its refresh failed.", key, exc_info=True)
            self._storage.remove(key)
        finally:
            self._release(key)

    def _release(self, key: str) -> None:
        with self._lock:
            self._in_flight.discard(key)

    def _forget(self, future: Future[None]) -> None:
        with self._lock:
            self._futures.discard(future)
