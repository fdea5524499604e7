from __future__ import annotations

import logging
import typing as tp

from typing_extensions import TypeAlias

from ._models import CacheEntry, Response, clone_response
from ._serializers import BaseSerializer, JSONSerializer
from ._synchronization import Lock
from ._utils import BaseClock, Clock

try:
    import redis
except ImportError:  # pragma: no cover
    redis = None  # type: ignore

logger = logging.getLogger("lazycache.storages")

__all__ = (
    "BaseStorage",
    "InMemoryStorage",
    "RedisStorage",
)

Timestamp: TypeAlias = tp.Union[int, float]


class BaseStorage:
    def __init__(self, clock: tp.Optional[BaseClock] = None) -> None:
        self._clock = clock or Clock()

    def get(self, key: str) -> tp.Optional[CacheEntry]:
        raise NotImplementedError()

    def set(
        self, key: str, response: Response, expiration: Timestamp, created: tp.Optional[Timestamp] = None
    ) -> None:
        raise NotImplementedError()

    def remove(self, key: str) -> None:
        raise NotImplementedError()

    def close(self) -> None:
        raise NotImplementedError()

    def _make_entry(
        self, key: str, response: Response, expiration: Timestamp, created: tp.Optional[Timestamp] = None
    ) -> CacheEntry:
        return CacheEntry(
            key=key,
            response=clone_response(response),
            created=self._clock.now() if created is None else float(created),
            expiration=float(expiration),
        )


class InMemoryStorage(BaseStorage):
    """
    A simple in-memory storage.

    Entries are kept until they are replaced or removed; the storage never
    evicts on its own.

    :param clock: The time source used to stamp new entries, defaults to None
    :type clock: tp.Optional[BaseClock], optional
    """

    def __init__(self, clock: tp.Optional[BaseClock] = None) -> None:
        super().__init__(clock)
        self._cache: tp.Dict[str, CacheEntry] = {}
        self._lock = Lock()

    def get(self, key: str) -> tp.Optional[CacheEntry]:
        """
        Retrieves the entry stored under the key.

        :param key: The cache key
        :type key: str
        :return: The stored entry, if any
        :rtype: tp.Optional[CacheEntry]
        """
        with self._lock:
            return self._cache.get(key)

    def set(
        self, key: str, response: Response, expiration: Timestamp, created: tp.Optional[Timestamp] = None
    ) -> None:
        """
        Stores the response, replacing any previous entry for the key.

        :param key: The cache key
        :type key: str
        :param response: The response to store
        :type response: Response
        :param expiration: POSIX timestamp after which the entry is stale
        :type expiration: Timestamp
        :param created: Creation time of the entry, defaults to the storage clock's now
        :type created: tp.Optional[Timestamp], optional
        """
        entry = self._make_entry(key, response, expiration, created)
        with self._lock:
            self._cache[key] = entry
        logger.debug("Stored the entry %s expiring at %s.", key, entry.expiration)

    def remove(self, key: str) -> None:
        """
        Removes the entry stored under the key, if there is one.

        :param key: The cache key
        :type key: str
        """
        with self._lock:
            removed = self._cache.pop(key, None)
        if removed is not None:
            logger.debug("Removed the entry %s.", key)

    def close(self) -> None:  # pragma: no cover
        return

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


class RedisStorage(BaseStorage):
    """
    A simple redis storage.

    Keys are never given a redis TTL, since expired entries must stay
    available for stale-while-revalidate.

    :param client: A client for redis, defaults to None
    :type client: tp.Optional["redis.Redis"], optional
    :param serializer: Serializer capable of serializing and de-serializing cache entries, defaults to None
    :type serializer: tp.Optional[BaseSerializer], optional
    :param prefix: Prepended to every cache key, defaults to "lazycache:"
    :type prefix: str, optional
    :param clock: The time source used to stamp new entries, defaults to None
    :type clock: tp.Optional[BaseClock], optional
    """

    def __init__(
        self,
        client: tp.Optional[redis.Redis] = None,  # type: ignore
        serializer: tp.Optional[BaseSerializer] = None,
        prefix: str = "lazycache:",
        clock: tp.Optional[BaseClock] = None,
    ) -> None:
        if redis is None:  # pragma: no cover
            raise RuntimeError(
                f"The `{type(self).__name__}` was used, but the required packages were not found. "
                "Check that you have `lazycache` installed with the `redis` extension as shown.\n"
                "```pip install lazycache[redis]```"
            )
        super().__init__(clock)

        if client is None:  # pragma: no cover
            self._client = redis.Redis()
        else:
            self._client = client
        self._serializer = serializer or JSONSerializer()
        self._prefix = prefix

    def get(self, key: str) -> tp.Optional[CacheEntry]:
        data = self._client.get(self._prefix + key)
        if data is None:
            return None
        return self._serializer.loads(data)

    def set(
        self, key: str, response: Response, expiration: Timestamp, created: tp.Optional[Timestamp] = None
    ) -> None:
        entry = self._make_entry(key, response, expiration, created)
        self._client.set(self._prefix + key, self._serializer.dumps(entry))
        logger.debug("Stored the entry %s expiring at %s.", key, entry.expiration)

    def remove(self, key: str) -> None:
        self._client.delete(self._prefix + key)

    def close(self) -> None:  # pragma: no cover
        self._client.close()
