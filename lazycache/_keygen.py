from __future__ import annotations

import typing as tp
from abc import ABC, abstractmethod

from ._models import Request
from ._utils import hash_key

__all__ = ("BaseKeyGenerator", "DefaultKeyGenerator")


class BaseKeyGenerator(ABC):
    @abstractmethod
    def get(self, request: Request) -> str:
        """Returns the cache key for the request, or an empty string if it must not be cached."""


class DefaultKeyGenerator(BaseKeyGenerator):
    """
    Keys requests by method, path and query parameters.

    :param vary_params: Names of the query parameters that take part in the key.
        Every parameter is used when it is None, defaults to None
    :type vary_params: tp.Optional[tp.Iterable[str]], optional
    :param cacheable_methods: Requests using any other method are not cached, defaults to ("GET", "HEAD")
    :type cacheable_methods: tp.Iterable[str], optional
    """

    def __init__(
        self,
        vary_params: tp.Optional[tp.Iterable[str]] = None,
        cacheable_methods: tp.Iterable[str] = ("GET", "HEAD"),
    ) -> None:
        self._vary_params = None if vary_params is None else {param.lower() for param in vary_params}
        self._cacheable_methods = {method.upper() for method in cacheable_methods}

    def get(self, request: Request) -> str:
        method = request.method.upper()
        if method not in self._cacheable_methods:
            return ""

        params = sorted(
            (name.lower(), value)
            for name, value in request.query_params
            if self._vary_params is None or name.lower() in self._vary_params
        )
        query = "&".join(f"{name}={value}" for name, value in params)
        return hash_key(method, request.path.lower(), query)
