from __future__ import annotations

import logging
import types
import typing as tp
from dataclasses import dataclass, field

import anyio
from anyio.abc import TaskGroup
from typing_extensions import Protocol, assert_never

from ._freshness import AnyDecision, FreshnessContext, FreshnessEvaluator, Hit, Miss, NotModified, Stale
from ._keygen import KeyBuilder
from ._models import CacheEntry, EntryMeta, Request
from ._serializers import BaseSerializer, JSONSerializer
from ._utils import BaseClock, Clock, generate_http_date, parse_date
from ._async._storages import AsyncBaseStorage, AsyncInMemoryStorage

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

logger = logging.getLogger("recache.response_cache")

__all__ = ("CacheOptions", "ResponseSink", "CapturingSink", "ResponseCache", "Handler")

COMMON_HEADERS = ("age", "date", "last-modified", "etag")
UNREPLAYABLE_HEADERS = ("transfer-encoding",)


@dataclass
class CacheOptions:
    """
    Configuration of the response cache.

    Attributes:
    ----------
    max_age : int
        Default number of seconds a captured response stays fresh, and the TTL
        of its stored entry. Requests may override it with `Cache-Control: max-age`.

    supported_methods : list[str]
        Request methods served from and stored into the cache. Other methods
        bypass the cache entirely.

    vary : list[str]
        Request header names the responses vary on. These take the part of the
        response's `Vary` header and must be known before the handler runs.

    Examples:
    --------
    >>> options = CacheOptions(max_age=60, vary=["Accept-Language"])
    """

    max_age: int = 600
    supported_methods: list[str] = field(default_factory=lambda: ["GET", "HEAD"])
    vary: list[str] = field(default_factory=list)
    cache_status_header: str = "X-Cache"
    cache_key_header: str = "X-Cache-Key"


class ResponseSink(Protocol):
    """
    The response-construction interface a handler writes to.

    Headers may be set until the first `write` or `finish`.
    """

    def set_status(self, status_code: int) -> None: ...

    def set_header(self, name: str, value: str) -> None: ...

    async def write(self, chunk: bytes) -> None: ...

    async def finish(self) -> None: ...


Handler = tp.Callable[[Request, ResponseSink], tp.Awaitable[None]]


class CapturingSink:
    """
    Forwards every call to the real sink while recording the response for storage.

    When the handler finishes a 200 response, `on_complete` receives the
    captured entry. A 200 response without `Last-Modified` gets one at the
    moment its headers are finalized.
    """

    def __init__(
        self,
        sink: ResponseSink,
        on_complete: tp.Callable[[CacheEntry], tp.Awaitable[None]],
        clock: tp.Optional[BaseClock] = None,
    ) -> None:
        self._sink = sink
        self._on_complete = on_complete
        self._clock = clock if clock is not None else Clock()
        self.status_code = 200
        self.headers: tp.List[tp.Tuple[str, str]] = []
        self.chunks: tp.List[bytes] = []
        self.meta = EntryMeta()
        self._has_last_modified = False
        self._headers_finalized = False
        self._finished = False

    def set_status(self, status_code: int) -> None:
        self._sink.set_status(status_code)
        self.status_code = status_code

    def set_header(self, name: str, value: str) -> None:
        self._sink.set_header(name, value)
        self.headers.append((name, value))

        name_lc = name.lower()
        if name_lc == "etag":
            self.meta.etag = value
        elif name_lc == "last-modified":
            self._has_last_modified = True
            self.meta.last_modified = parse_date(value)

    def _finalize_headers(self) -> None:
        if self._headers_finalized:
            return
        self._headers_finalized = True
        if self.status_code == 200 and not self._has_last_modified:
            self.set_header("Last-Modified", generate_http_date(self._clock.now()))

    async def write(self, chunk: bytes) -> None:
        self._finalize_headers()
        await self._sink.write(chunk)
        if chunk:
            self.chunks.append(chunk)

    async def finish(self) -> None:
        if self._finished:
            return
        self._finalize_headers()
        self._finished = True
        await self._sink.finish()

        if self.status_code != 200:
            logger.debug("Not caching the response since its status code (%d) is not 200.", self.status_code)
            return

        await self._on_complete(CacheEntry(headers=list(self.headers), body=b"".join(self.chunks), meta=self.meta))


class ResponseCache:
    """
    Wraps a response handler, serving cached responses and storing fresh ones.

    Honors request `Cache-Control` (`max-age`, `no-cache`), `If-Modified-Since`
    and `If-None-Match`. Caching never fails a request: storage errors are
    logged and the request falls through to the handler.

    Entries are written after the client has received the response. Inside
    `async with`, the writes run as background tasks that are awaited on exit.

    :param storage: Storage that keeps the captured responses, defaults to None
    :type storage: tp.Optional[AsyncBaseStorage], optional
    :param options: Cache configuration, defaults to None
    :type options: tp.Optional[CacheOptions], optional
    :param clock: Source of the current time, defaults to None
    :type clock: tp.Optional[BaseClock], optional
    :param serializer: Serializer for the stored values, defaults to None
    :type serializer: tp.Optional[BaseSerializer], optional
    """

    def __init__(
        self,
        storage: tp.Optional[AsyncBaseStorage] = None,
        options: tp.Optional[CacheOptions] = None,
        clock: tp.Optional[BaseClock] = None,
        serializer: tp.Optional[BaseSerializer] = None,
    ) -> None:
        self.storage = storage if storage is not None else AsyncInMemoryStorage()

        if not isinstance(self.storage, AsyncBaseStorage):  # pragma: no cover
            raise TypeError(f"Expected subclass of `AsyncBaseStorage` but got `{storage.__class__.__name__}`")

        self.options = options if options is not None else CacheOptions()
        self._supported_methods = [method.upper() for method in self.options.supported_methods]
        self._clock = clock if clock is not None else Clock()
        self._serializer = serializer or JSONSerializer()
        self._evaluator = FreshnessEvaluator(clock=self._clock)
        self._key_builder = KeyBuilder(self.options.vary)
        self._task_group: tp.Optional[TaskGroup] = None

    async def serve(self, request: Request, sink: ResponseSink, handler: Handler) -> None:
        """
        Serves the request from the cache, or runs the handler and captures its response.
        """

        method = request.method.upper()
        if method not in self._supported_methods:
            logger.debug("Bypassing the cache for %s %s since the method is not cacheable.", method, request.path)
            await handler(request, sink)
            return

        key = self._key_builder(request.path, request.headers)
        sink.set_header(self.options.cache_key_header, key)

        ctx = FreshnessContext.from_headers(request.headers, self.options.max_age)
        decision = await self._lookup(key, ctx)
        logger.debug("Cache decision for %s %s: %s", method, request.path, type(decision).__name__)

        if isinstance(decision, (Miss, Stale)):
            await self._revalidate(key, ctx, request, sink, handler, decision)
        elif isinstance(decision, NotModified):
            await self._send_not_modified(sink, decision.meta)
        elif isinstance(decision, Hit):
            entry = await self._load_entry(key, decision.meta)
            if entry is None:
                logger.debug("Entry %s lost its headers or body, treating it as a miss.", key)
                await self._revalidate(key, ctx, request, sink, handler, Miss())
            else:
                await self._send_cache_entry(request, sink, entry)
        else:
            assert_never(decision)

    async def _lookup(self, key: str, ctx: FreshnessContext) -> AnyDecision:
        if not self._evaluator.needs_lookup(ctx):
            return self._evaluator.evaluate(None, ctx)

        try:
            stored_meta = await self.storage.get(key + ":meta")
            meta = self._serializer.loads_meta(stored_meta) if stored_meta is not None else None
        except Exception:
            logger.warning("Could not read the metadata of %s, treating it as a miss.", key, exc_info=True)
            return Miss()

        return self._evaluator.evaluate(meta, ctx)

    async def _load_entry(self, key: str, meta: EntryMeta) -> tp.Optional[CacheEntry]:
        try:
            stored_headers = await self.storage.get(key + ":headers")
            stored_body = await self.storage.get(key + ":body")
            if stored_headers is None or stored_body is None:
                return None
            return CacheEntry(
                headers=self._serializer.loads_headers(stored_headers),
                body=self._serializer.loads_body(stored_body),
                meta=meta,
            )
        except Exception:
            logger.warning("Could not read the entry %s, treating it as a miss.", key, exc_info=True)
            return None

    async def _revalidate(
        self,
        key: str,
        ctx: FreshnessContext,
        request: Request,
        sink: ResponseSink,
        handler: Handler,
        decision: tp.Union[Miss, Stale],
    ) -> None:
        sink.set_header(self.options.cache_status_header, "STALE" if isinstance(decision, Stale) else "MISS")

        if request.method.upper() == "HEAD":
            # HEAD responses carry no body, so there is nothing complete to store.
            await handler(request, sink)
            return

        ttl = ctx.max_age if ctx.max_age > 0 else self.options.max_age

        async def on_complete(entry: CacheEntry) -> None:
            if self._task_group is not None:
                self._task_group.start_soon(self._store_entry, key, entry, ttl)
            else:
                await self._store_entry(key, entry, ttl)

        await handler(request, CapturingSink(sink, on_complete, clock=self._clock))

    async def _store_entry(self, key: str, entry: CacheEntry, ttl: int) -> None:
        try:
            await self.storage.set(key + ":headers", self._serializer.dumps_headers(entry.headers), ttl)
            await self.storage.set(key + ":body", self._serializer.dumps_body(entry.body), ttl)
            await self.storage.set(key + ":meta", self._serializer.dumps_meta(entry.meta), ttl)
        except Exception:
            logger.warning("Could not store the entry %s.", key, exc_info=True)
        else:
            logger.debug("Stored the entry %s for %d seconds.", key, ttl)

    def _send_common_headers(self, sink: ResponseSink, meta: EntryMeta) -> None:
        now = self._clock.now()
        if meta.last_modified is not None:
            sink.set_header("Age", str(max(0, now - meta.last_modified)))
        sink.set_header("Date", generate_http_date(now))
        if meta.last_modified is not None:
            sink.set_header("Last-Modified", generate_http_date(meta.last_modified))
        if meta.etag:
            sink.set_header("ETag", meta.etag)

    async def _send_not_modified(self, sink: ResponseSink, meta: EntryMeta) -> None:
        sink.set_status(304)
        self._send_common_headers(sink, meta)
        await sink.finish()

    async def _send_cache_entry(self, request: Request, sink: ResponseSink, entry: CacheEntry) -> None:
        sink.set_status(200)
        self._send_common_headers(sink, entry.meta)
        sink.set_header(self.options.cache_status_header, "HIT")

        for name, value in entry.headers:
            if name.lower() in COMMON_HEADERS or name.lower() in UNREPLAYABLE_HEADERS:
                continue
            sink.set_header(name, value)

        if request.method.upper() != "HEAD":
            await sink.write(entry.body)
        await sink.finish()

    async def aclose(self) -> None:
        await self.storage.aclose()

    async def __aenter__(self) -> Self:
        self._task_group = anyio.create_task_group()
        await self._task_group.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> None:
        assert self._task_group is not None
        try:
            await self._task_group.__aexit__(exc_type, exc_value, traceback)
        finally:
            self._task_group = None
            await self.aclose()
