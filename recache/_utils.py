from __future__ import annotations

import calendar
import hashlib
import time
import typing as tp
from email.utils import formatdate, parsedate_tz

HEADERS_ENCODING = "iso-8859-1"

__all__ = (
    "BaseClock",
    "Clock",
    "parse_date",
    "generate_http_date",
    "hexdigest",
    "float_seconds_to_int_milliseconds",
)


class BaseClock:
    def now(self) -> int:
        raise NotImplementedError()


class Clock(BaseClock):
    def now(self) -> int:
        return int(time.time())


def parse_date(date: str) -> tp.Optional[int]:
    expires = parsedate_tz(date)
    if expires is None:
        return None
    timestamp = calendar.timegm(expires[:6])
    return timestamp


def generate_http_date(timestamp: tp.Optional[float] = None) -> str:
    """
    Generate a date value for HTTP headers in RFC 1123 format.

    Example output: 'Sun, 26 Oct 2025 12:34:56 GMT'
    """
    return formatdate(timeval=timestamp, localtime=False, usegmt=True)


def hexdigest(text: str, algorithm: str = "sha1") -> str:
    return hashlib.new(algorithm, text.encode("utf-8")).hexdigest()


def float_seconds_to_int_milliseconds(seconds: float) -> int:
    return int(seconds * 1000)
