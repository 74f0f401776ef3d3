from __future__ import annotations

import logging
import typing as t

from recache._async._storages import AsyncBaseStorage
from recache._headers import Headers
from recache._models import Request
from recache._response_cache import CacheOptions, ResponseCache, ResponseSink
from recache._utils import HEADERS_ENCODING

logger = logging.getLogger("recache.asgi")

__all__ = ("ASGICacheMiddleware", "ASGIResponseSink")


class _ASGIScope(t.TypedDict, total=False):
    """ASGI HTTP scope type."""

    type: str
    asgi: dict[str, str]
    http_version: str
    method: str
    scheme: str
    path: str
    query_string: bytes
    root_path: str
    headers: list[tuple[bytes, bytes]]
    server: tuple[str, int | None] | None
    client: tuple[str, int] | None
    state: dict[str, t.Any]
    extensions: dict[str, t.Any]


_Scope = _ASGIScope
_Receive = t.Callable[[], t.Awaitable[dict[str, t.Any]]]
_Send = t.Callable[[dict[str, t.Any]], t.Awaitable[None]]
_ASGIApp = t.Callable[[_Scope, _Receive, _Send], t.Awaitable[None]]


class ASGIResponseSink:
    """
    A response sink that writes to an ASGI `send` callable.

    The status and headers are buffered and sent with the first body chunk.
    """

    def __init__(self, send: _Send) -> None:
        self._send = send
        self.status_code = 200
        self.headers: list[tuple[bytes, bytes]] = []
        self.started = False
        self.finished = False

    def set_status(self, status_code: int) -> None:
        if self.started:
            raise RuntimeError("Cannot set the status after the response has started.")
        self.status_code = status_code

    def set_header(self, name: str, value: str) -> None:
        if self.started:
            raise RuntimeError("Cannot set headers after the response has started.")
        self.headers.append((name.lower().encode(HEADERS_ENCODING), value.encode(HEADERS_ENCODING)))

    async def _start(self) -> None:
        if self.started:
            return
        self.started = True
        await self._send(
            {
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self.headers,
            }
        )
        logger.debug("Response headers sent: status=%d headers_count=%d", self.status_code, len(self.headers))

    async def write(self, chunk: bytes) -> None:
        await self._start()
        await self._send({"type": "http.response.body", "body": chunk, "more_body": True})

    async def finish(self) -> None:
        if self.finished:
            return
        await self._start()
        self.finished = True
        await self._send({"type": "http.response.body", "body": b"", "more_body": False})


class ASGICacheMiddleware:
    """
    ASGI middleware that caches the responses of the wrapped application.

    GET and HEAD requests are answered from the cache when a fresh entry
    exists; otherwise the application runs and its 200 responses are stored.
    Responses carry an `X-Cache` status and an `X-Cache-Key` header.

    Args:
        app: The ASGI application to wrap.
        storage: The storage backend to use for caching. Defaults to AsyncInMemoryStorage.
        options: Cache configuration. The `vary` option lists the request headers
            the application's responses vary on.

    Example:
        ```python
        from recache import AsyncRedisStorage, CacheOptions
        from recache.asgi import ASGICacheMiddleware

        app = ASGICacheMiddleware(
            app=my_asgi_app,
            storage=AsyncRedisStorage(),
            options=CacheOptions(max_age=600, vary=["Accept-Language"]),
        )
        ```
    """

    def __init__(
        self,
        app: _ASGIApp,
        storage: AsyncBaseStorage | None = None,
        options: CacheOptions | None = None,
        cache: ResponseCache | None = None,
    ) -> None:
        self.app = app
        self.cache = cache if cache is not None else ResponseCache(storage=storage, options=options)

        logger.info(
            "Initialized ASGICacheMiddleware with storage=%s, max_age=%d, vary=%s",
            type(self.cache.storage).__name__,
            self.cache.options.max_age,
            self.cache.options.vary,
        )

    async def __call__(self, scope: _Scope, receive: _Receive, send: _Send) -> None:
        """
        Handle an ASGI request.

        Args:
            scope: The ASGI scope dictionary.
            receive: The ASGI receive callable.
            send: The ASGI send callable.
        """
        if scope["type"] != "http":
            logger.debug("Skipping non-HTTP request: type=%s", scope["type"])
            await self.app(scope, receive, send)
            return

        request = self._asgi_to_internal_request(scope)
        logger.debug("Incoming HTTP request: method=%s path=%s", request.method, request.path)

        async def call_app(request: Request, sink: ResponseSink) -> None:
            async def inner_send(message: dict[str, t.Any]) -> None:
                if message["type"] == "http.response.start":
                    sink.set_status(message["status"])
                    for key, value in message.get("headers", []):
                        sink.set_header(key.decode(HEADERS_ENCODING), value.decode(HEADERS_ENCODING))
                elif message["type"] == "http.response.body":
                    body_chunk = message.get("body", b"")
                    if body_chunk:
                        await sink.write(body_chunk)
                    if not message.get("more_body", False):
                        await sink.finish()
                else:  # pragma: no cover
                    await send(message)

            try:
                await self.app(scope, receive, inner_send)
            except Exception as e:
                logger.error(
                    "Error calling wrapped application: path=%s error=%s",
                    request.path,
                    str(e),
                    exc_info=True,
                )
                raise

        await self.cache.serve(request, ASGIResponseSink(send), call_app)

    def _asgi_to_internal_request(self, scope: _Scope) -> Request:
        """
        Convert an ASGI HTTP scope to an internal Request object.

        Args:
            scope: The ASGI scope dictionary.

        Returns:
            The internal Request object.
        """
        headers = Headers(
            [
                (key.decode(HEADERS_ENCODING), value.decode(HEADERS_ENCODING))
                for key, value in scope.get("headers", [])
            ]
        )
        return Request(method=scope.get("method", "GET"), path=scope.get("path", "/"), headers=headers)

    async def aclose(self) -> None:
        """Close the storage backend and release resources."""
        logger.info("Closing ASGICacheMiddleware and storage backend")
        await self.cache.aclose()
