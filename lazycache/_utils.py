from __future__ import annotations

import calendar
import hashlib
import time
import typing as tp
from email.utils import formatdate, parsedate_tz

from ._exceptions import ExpirationError


class BaseClock:
    def now(self) -> float:
        raise NotImplementedError()


class Clock(BaseClock):
    def now(self) -> float:
        return time.time()


def parse_date(date: str) -> tp.Optional[int]:
    expires = parsedate_tz(date)
    if expires is None:
        return None
    timestamp = calendar.timegm(expires[:6])
    if expires[9]:
        timestamp -= expires[9]
    return timestamp


def parse_expiration(value: str) -> int:
    """
    Converts a side-channel expiration value into a POSIX timestamp.

    The value must be an HTTP-date (RFC 9110, Section 5.6.7), which is
    locale-invariant by definition.
    """
    timestamp = parse_date(value)
    if timestamp is None:
        raise ExpirationError(f"Expected an HTTP-date, but got {value!r}.")
    return timestamp


def generate_http_date(timestamp: tp.Optional[float] = None) -> str:
    """
    Generate an HTTP-date for the given timestamp (the current time by default).

    Example output: 'Sun, 26 Oct 2025 12:34:56 GMT'
    """
    return formatdate(timeval=timestamp, localtime=False, usegmt=True)


def hash_key(*parts: str) -> str:
    hasher = hashlib.blake2b(digest_size=16)
    for part in parts:
        hasher.update(part.encode("utf-8"))
        hasher.update(b"\x00")
    return hasher.hexdigest()
