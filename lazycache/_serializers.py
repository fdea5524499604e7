import base64
import json
import typing as tp

from ._headers import Headers
from ._models import CacheEntry, Response

__all__ = ("BaseSerializer", "JSONSerializer")


class BaseSerializer:
    def dumps(self, entry: CacheEntry) -> tp.Union[str, bytes]:
        raise NotImplementedError()

    def loads(self, data: tp.Union[str, bytes]) -> CacheEntry:
        raise NotImplementedError()

    @property
    def is_binary(self) -> bool:
        raise NotImplementedError()


class JSONSerializer(BaseSerializer):
    """A simple json-based serializer."""

    def dumps(self, entry: CacheEntry) -> tp.Union[str, bytes]:
        """
        Dumps the cache entry.

        :param entry: A cache entry
        :type entry: CacheEntry
        :return: Serialized entry
        :rtype: tp.Union[str, bytes]
        """
        response_dict = {
            "status_code": entry.response.status_code,
            "headers": entry.response.headers.multi_items(),
            "content": base64.b64encode(entry.response.content).decode("ascii"),
        }

        full_json = {
            "key": entry.key,
            "created": entry.created,
            "expiration": entry.expiration,
            "response": response_dict,
        }

        return json.dumps(full_json, indent=4)

    def loads(self, data: tp.Union[str, bytes]) -> CacheEntry:
        """
        Loads the cache entry from serialized data.

        :param data: Serialized data
        :type data: tp.Union[str, bytes]
        :return: The cache entry
        :rtype: CacheEntry
        """

        full_json = json.loads(data)
        response_dict = full_json["response"]

        headers = Headers()
        for key, value in response_dict["headers"]:
            headers.add(key, value)

        response = Response(
            status_code=response_dict["status_code"],
            headers=headers,
            content=base64.b64decode(response_dict["content"].encode("ascii")),
        )

        return CacheEntry(
            key=full_json["key"],
            response=response,
            created=full_json["created"],
            expiration=full_json["expiration"],
        )

    @property
    def is_binary(self) -> bool:  # pragma: no cover
        return False
