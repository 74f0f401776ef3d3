from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ._headers import Headers

__all__ = ("EntryMeta", "CacheEntry", "RemoteCacheRecord", "FetchResult", "Request")


@dataclass
class EntryMeta:
    last_modified: Optional[int] = None
    """Epoch seconds of the cached response's `Last-Modified` header."""

    etag: Optional[str] = None
    """Raw `ETag` header value of the cached response."""


@dataclass
class CacheEntry:
    """
    A captured response, stored as three sub-entries (headers, body, meta) under one key.
    """

    headers: List[Tuple[str, str]]
    body: bytes
    meta: EntryMeta


@dataclass
class RemoteCacheRecord:
    body: bytes
    last_modified: str
    """Raw `Last-Modified` header as sent by the remote origin, empty when it sent none."""

    cached_at: int
    """Epoch milliseconds of the fetch that produced this record."""


@dataclass
class FetchResult:
    status: int
    body: bytes

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


@dataclass
class Request:
    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
