from __future__ import annotations

import string
from typing import Any, Dict, Iterator, List, Mapping, MutableMapping, Optional, Tuple, Union

from ._exceptions import ParseError, ValidationError

## Grammar


HTAB = "\t"
SP = " "
obs_text = "".join(chr(i) for i in range(0x80, 0xFF + 1))  # 0x80-0xFF

tchar = "!#$%&'*+-.^_`|~0123456789" + string.ascii_letters
qdtext = "".join(
    [
        HTAB,
        SP,
        "\x21",
        "".join(chr(i) for i in range(0x23, 0x5B + 1)),  # 0x23-0x5b
        "".join(chr(i) for i in range(0x5D, 0x7E + 1)),  # 0x5D-0x7E
        obs_text,
    ]
)

# Request directives, RFC 9111 Section 5.2.1
TIME_FIELDS = [
    "max_age",
    "max_stale",
    "min_fresh",
]

# max-stale may be sent without an argument, meaning "any staleness"
OPTIONAL_TIME_FIELDS = [
    "max_stale",
]

BOOLEAN_FIELDS = [
    "no_store",
    "no_transform",
    "only_if_cached",
]

# Request-side no-cache takes no argument; a single token is tolerated
LIST_FIELDS = [
    "no_cache",
]

__all__ = (
    "CacheControl",
    "Headers",
    "parse_cache_control",
)


def strip_ows_around(text: str) -> str:
    return text.strip(" ").strip("\t")


def normalize_directive(text: str) -> str:
    return text.lower().replace("-", "_")


def parse_cache_control(cache_control_values: List[str]) -> "CacheControl":
    """
    Parses the values of one or more Cache-Control request headers.

    Raises `ParseError` when a value violates the directive grammar and
    `ValidationError` when a known directive carries an unexpected argument.
    Unknown directives are ignored.
    """
    directives: Dict[str, Optional[str]] = {}

    for cache_control_value in cache_control_values:
        for directive in cache_control_value.split(","):
            key: str = ""
            value: Optional[str] = None
            dquote = False

            if not directive:
                raise ParseError("The directive should not be left blank.")

            directive = strip_ows_around(directive)

            if not directive:
                raise ParseError("The directive should not contain only whitespaces.")

            for i, key_char in enumerate(directive):
                if key_char == "=":
                    value = directive[i + 1 :]

                    if not value:
                        raise ParseError("The directive value cannot be left blank.")

                    if value[0] == '"':
                        dquote = True
                    if dquote and (len(value) < 2 or value[-1] != '"'):
                        raise ParseError("Invalid quotes around the value.")

                    if not dquote:
                        for value_char in value:
                            if value_char not in tchar:
                                raise ParseError(
                                    f"The character '{value_char!r}' is not permitted for the unquoted values."
                                )
                    else:
                        for value_char in value[1:-1]:
                            if value_char not in qdtext:
                                raise ParseError(
                                    f"The character '{value_char!r}' is not permitted for the quoted values."
                                )
                    break

                if key_char not in tchar:
                    raise ParseError(f"The character '{key_char!r}' is not permitted in the directive name.")
                key += key_char
            directives[key] = value
    validated_data = CacheControl.validate(directives)
    return CacheControl(**validated_data)


class CacheControl:
    def __init__(
        self,
        max_age: Optional[int] = None,  # [RFC9111, Section 5.2.1.1]
        max_stale: Union[int, bool, None] = None,  # [RFC9111, Section 5.2.1.2]
        min_fresh: Optional[int] = None,  # [RFC9111, Section 5.2.1.3]
        no_cache: Union[bool, List[str]] = False,  # [RFC9111, Section 5.2.1.4]
        no_store: bool = False,  # [RFC9111, Section 5.2.1.5]
        no_transform: bool = False,  # [RFC9111, Section 5.2.1.6]
        only_if_cached: bool = False,  # [RFC9111, Section 5.2.1.7]
    ) -> None:
        self.max_age = max_age
        self.max_stale = max_stale
        self.min_fresh = min_fresh
        self.no_cache = no_cache
        self.no_store = no_store
        self.no_transform = no_transform
        self.only_if_cached = only_if_cached

    @classmethod
    def validate(cls, directives: Dict[str, Any]) -> Dict[str, Any]:
        validated_data: Dict[str, Any] = {}

        for key, value in directives.items():
            key = normalize_directive(key)
            if key in TIME_FIELDS:
                if value is None:
                    if key in OPTIONAL_TIME_FIELDS:
                        validated_data[key] = True
                        continue
                    raise ValidationError(f"The directive '{key}' necessitates a value.")

                if value[0] == '"' or value[-1] == '"':
                    raise ValidationError(f"The argument '{key}' should be an integer, but a quote was found.")

                try:
                    seconds = int(value)
                except ValueError:
                    raise ValidationError(f"The argument '{key}' should be an integer, but got '{value!r}'.")
                if seconds < 0:
                    raise ValidationError(f"The argument '{key}' should not be negative.")
                validated_data[key] = seconds
            elif key in BOOLEAN_FIELDS:
                if value is not None:
                    raise ValidationError(f"The directive '{key}' should have no value, but it does.")
                validated_data[key] = True
            elif key in LIST_FIELDS:
                if value is None:
                    validated_data[key] = True
                else:
                    values = []
                    for list_value in value.strip('"').split(","):
                        list_value = strip_ows_around(list_value)
                        if not list_value:
                            raise ValidationError("The list value must not be empty.")
                        values.append(list_value)
                    validated_data[key] = values

        return validated_data

    def __repr__(self) -> str:
        fields = []

        for key in TIME_FIELDS:
            value = getattr(self, key)
            if value is True:
                fields.append(key)
            elif value is not None:
                fields.append(f"{key}={value}")

        for key in BOOLEAN_FIELDS + LIST_FIELDS:
            if getattr(self, key):
                fields.append(key)

        return f"<{type(self).__name__} {', '.join(fields)}>"


class Headers(MutableMapping[str, str]):
    """
    Case-insensitive HTTP headers.

    Item assignment replaces every value of a field, `add` appends one.
    Reading a field with several values joins them with ", ".
    """

    def __init__(self, headers: Optional[Mapping[str, Union[str, List[str]]]] = None) -> None:
        self._headers: Dict[str, Tuple[str, List[str]]] = {}
        for key, value in (headers or {}).items():
            self._headers[key.lower()] = (key, [value] if isinstance(value, str) else list(value))

    def get_list(self, key: str) -> Optional[List[str]]:
        item = self._headers.get(key.lower())
        return None if item is None else item[1][:]

    def add(self, key: str, value: str) -> None:
        self._headers.setdefault(key.lower(), (key, []))[1].append(value)

    def multi_items(self) -> List[Tuple[str, str]]:
        return [(name, value) for name, values in self._headers.values() for value in values]

    def copy(self) -> "Headers":
        return Headers({name: values for name, values in self._headers.values()})

    def __getitem__(self, key: str) -> str:
        return ", ".join(self._headers[key.lower()][1])

    def __setitem__(self, key: str, value: str) -> None:
        self._headers[key.lower()] = (key, [value])

    def __delitem__(self, key: str) -> None:
        del self._headers[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._headers.values())

    def __len__(self) -> int:
        return len(self._headers)

    def __repr__(self) -> str:
        return f"Headers({dict(self._headers.values())!r})"

    def __eq__(self, other_headers: Any) -> bool:
        if not isinstance(other_headers, Headers):
            return False
        return {k: v[1] for k, v in self._headers.items()} == {k: v[1] for k, v in other_headers._headers.items()}
