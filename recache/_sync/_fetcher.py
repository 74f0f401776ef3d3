from __future__ import annotations

import logging
import time
import types
import typing as tp

import httpx

from .._exceptions import InconsistentCacheError, UnexpectedStatusError
from .._keygen import build_request_key
from .._models import FetchResult, RemoteCacheRecord
from .._serializers import BaseSerializer, JSONSerializer
from ._storages import BaseStorage, InMemoryStorage

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

logger = logging.getLogger("recache.fetcher")

__all__ = ("ConditionalFetcher",)

DEFAULT_TTL = 600


class ConditionalFetcher:
    """
    Fetches remote resources with conditional GET, caching the body and its `Last-Modified` value.

    :param client: HTTPX client used to issue requests, defaults to None
    :type client: tp.Optional[httpx.Client], optional
    :param storage: Storage that keeps the fetched bodies, defaults to None
    :type storage: tp.Optional[BaseStorage], optional
    :param ttl: Default number of seconds fetched bodies are kept, defaults to 600
    :type ttl: tp.Union[int, float]
    :param serializer: Serializer for the stored values, defaults to None
    :type serializer: tp.Optional[BaseSerializer], optional
    """

    def __init__(
        self,
        client: tp.Optional[httpx.Client] = None,
        storage: tp.Optional[BaseStorage] = None,
        ttl: tp.Union[int, float] = DEFAULT_TTL,
        serializer: tp.Optional[BaseSerializer] = None,
    ) -> None:
        self._client = client if client is not None else httpx.Client()
        self._storage = storage if storage is not None else InMemoryStorage()

        if not isinstance(self._storage, BaseStorage):  # pragma: no cover
            raise TypeError(f"Expected subclass of `BaseStorage` but got `{storage.__class__.__name__}`")

        self._ttl = ttl
        self._serializer = serializer or JSONSerializer()

    def fetch(
        self,
        url: str,
        cache_control: tp.Optional[str] = None,
        ttl: tp.Optional[tp.Union[int, float]] = None,
    ) -> FetchResult:
        """
        Fetches the resource, revalidating a previously cached copy when possible.

        :param url: The remote resource URL
        :type url: str
        :param cache_control: A `Cache-Control` directive; `no-cache` forces an unconditional request
        :type cache_control: tp.Optional[str], optional
        :param ttl: Number of seconds the fetched body is kept, defaults to the fetcher's ttl
        :type ttl: tp.Optional[tp.Union[int, float]], optional
        :return: The final status (200 or 304) and the body
        :rtype: FetchResult
        :raises httpx.HTTPError: When the transport fails
        :raises UnexpectedStatusError: When the origin answers with anything but 200 or 304
        :raises InconsistentCacheError: When the origin answers 304 but no cached body exists
        """

        key = build_request_key(url)
        ttl = ttl if ttl is not None else self._ttl

        last_modified = self._get_text(key + ":last_mod")

        headers = {}
        if cache_control:
            headers["Cache-Control"] = cache_control
        if cache_control != "no-cache" and last_modified:
            logger.debug("Adding the 'If-Modified-Since' header with the value of '%s' for %s.", last_modified, url)
            headers["If-Modified-Since"] = last_modified

        response = self._client.get(url, headers=headers)

        if response.status_code == 304:
            return self._handle_not_modified(key, url)
        if response.status_code == 200:
            return self._handle_ok(key, url, response, ttl)

        logger.debug("Unexpected status code %d for %s.", response.status_code, url)
        raise UnexpectedStatusError(url, response.status_code)

    def retrieve(self, url: str) -> tp.Optional[RemoteCacheRecord]:
        """
        Reads the cached record for a URL without touching the network.

        :param url: The remote resource URL
        :type url: str
        :return: The cached record, or None when its body is missing
        :rtype: tp.Optional[RemoteCacheRecord]
        """

        key = build_request_key(url)
        body = self._get_body(key)
        if body is None:
            return None
        cached_at = self._get_text(key + ":cached_at")
        return RemoteCacheRecord(
            body=body,
            last_modified=self._get_text(key + ":last_mod") or "",
            cached_at=int(cached_at) if cached_at else 0,
        )

    def _handle_not_modified(self, key: str, url: str) -> FetchResult:
        body = self._get_body(key)
        if body is None:
            raise InconsistentCacheError(url)
        logger.debug("Reusing the cached body for %s since the origin answered 304.", url)
        return FetchResult(status=304, body=body)

    def _handle_ok(self, key: str, url: str, response: httpx.Response, ttl: tp.Union[int, float]) -> FetchResult:
        body = response.read()
        last_modified = response.headers.get("Last-Modified", "")
        cached_at = int(time.time() * 1000)

        try:
            self._storage.set(key + ":body", self._serializer.dumps_body(body), ttl)
            self._storage.set(key + ":last_mod", self._serializer.dumps_text(last_modified), ttl)
            self._storage.set(key + ":cached_at", self._serializer.dumps_text(str(cached_at)), ttl)
        except Exception:
            logger.warning("Could not cache the response for %s.", url, exc_info=True)
        else:
            logger.debug("Cached the response for %s for %s seconds.", url, ttl)

        return FetchResult(status=200, body=body)

    def _get_text(self, key: str) -> tp.Optional[str]:
        try:
            value = self._storage.get(key)
        except Exception:
            logger.warning("Could not read %s from the storage.", key, exc_info=True)
            return None
        return self._serializer.loads_text(value) if value is not None else None

    def _get_body(self, key: str) -> tp.Optional[bytes]:
        try:
            value = self._storage.get(key + ":body")
        except Exception:
            logger.warning("Could not read %s from the storage.", key + ":body", exc_info=True)
            return None
        return self._serializer.loads_body(value) if value is not None else None

    def close(self) -> None:
        self._storage.close()
        self._client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> None:
        self.close()
