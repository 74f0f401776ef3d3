import typing as tp

import httpx
import pytest

from recache import (
    ConditionalFetcher,
    InMemoryStorage,
    FetchResult,
    InconsistentCacheError,
    UnexpectedStatusError,
)

URL = "https://example.com/feed.json"
LAST_MODIFIED = "Tue, 25 Aug 2015 12:00:00 GMT"


class Origin:
    def __init__(self) -> None:
        self.requests: tp.List[httpx.Request] = []
        self.responses: tp.List[httpx.Response] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


class RecordingStorage(InMemoryStorage):
    def __init__(self) -> None:
        super().__init__()
        self.ttls: tp.Dict[str, tp.Optional[tp.Union[int, float]]] = {}

    def set(self, key, value, ttl=None) -> None:
        self.ttls[key] = ttl
        super().set(key, value, ttl)


class BrokenStorage(InMemoryStorage):
    def set(self, key, value, ttl=None) -> None:
        raise RuntimeError("storage is down")


def make_fetcher(origin: Origin, storage=None, **kwargs) -> ConditionalFetcher:
    client = httpx.Client(transport=httpx.MockTransport(origin))
    return ConditionalFetcher(client=client, storage=storage or InMemoryStorage(), **kwargs)



def test_fetch_stores_the_body():
    origin = Origin()
    origin.responses.append(httpx.Response(200, headers={"Last-Modified": LAST_MODIFIED}, content=b'{"ok": true}'))

    with make_fetcher(origin) as fetcher:
        result = fetcher.fetch(URL)
        record = fetcher.retrieve(URL)

    assert result == FetchResult(status=200, body=b'{"ok": true}')
    assert result.text == '{"ok": true}'
    assert "If-Modified-Since" not in origin.requests[0].headers
    assert "Cache-Control" not in origin.requests[0].headers
    assert record is not None
    assert record.body == b'{"ok": true}'
    assert record.last_modified == LAST_MODIFIED
    assert record.cached_at > 0



def test_not_modified_reuses_the_cached_body():
    origin = Origin()
    origin.responses.append(httpx.Response(200, headers={"Last-Modified": LAST_MODIFIED}, content=b"payload"))
    origin.responses.append(httpx.Response(304))

    with make_fetcher(origin) as fetcher:
        fetcher.fetch(URL)
        result = fetcher.fetch(URL)
        record = fetcher.retrieve(URL)

    assert result == FetchResult(status=304, body=b"payload")
    assert origin.requests[1].headers["If-Modified-Since"] == LAST_MODIFIED
    assert record is not None
    assert record.last_modified == LAST_MODIFIED



def test_no_cache_skips_revalidation():
    origin = Origin()
    origin.responses.append(httpx.Response(200, headers={"Last-Modified": LAST_MODIFIED}, content=b"v1"))
    origin.responses.append(httpx.Response(200, content=b"v2"))

    with make_fetcher(origin) as fetcher:
        fetcher.fetch(URL)
        result = fetcher.fetch(URL, cache_control="no-cache")
        record = fetcher.retrieve(URL)

    assert result == FetchResult(status=200, body=b"v2")
    assert origin.requests[1].headers["Cache-Control"] == "no-cache"
    assert "If-Modified-Since" not in origin.requests[1].headers
    assert record is not None
    assert record.body == b"v2"
    assert record.last_modified == ""



def test_other_cache_control_is_forwarded_with_revalidation():
    origin = Origin()
    origin.responses.append(httpx.Response(200, headers={"Last-Modified": LAST_MODIFIED}, content=b"v1"))
    origin.responses.append(httpx.Response(304))

    with make_fetcher(origin) as fetcher:
        fetcher.fetch(URL)
        result = fetcher.fetch(URL, cache_control="max-age=0")

    assert result.status == 304
    assert origin.requests[1].headers["Cache-Control"] == "max-age=0"
    assert origin.requests[1].headers["If-Modified-Since"] == LAST_MODIFIED



def test_missing_last_modified_is_not_sent():
    origin = Origin()
    origin.responses.append(httpx.Response(200, content=b"v1"))
    origin.responses.append(httpx.Response(200, content=b"v2"))

    with make_fetcher(origin) as fetcher:
        fetcher.fetch(URL)
        fetcher.fetch(URL)

    assert "If-Modified-Since" not in origin.requests[1].headers



def test_not_modified_without_cached_body():
    origin = Origin()
    origin.responses.append(httpx.Response(304))

    with make_fetcher(origin) as fetcher:
        with pytest.raises(InconsistentCacheError) as exc_info:
            fetcher.fetch(URL)

    assert exc_info.value.url == URL



def test_unexpected_status_leaves_the_cache_alone():
    origin = Origin()
    origin.responses.append(httpx.Response(200, headers={"Last-Modified": LAST_MODIFIED}, content=b"v1"))
    origin.responses.append(httpx.Response(500, content=b"oops"))

    with make_fetcher(origin) as fetcher:
        fetcher.fetch(URL)
        with pytest.raises(UnexpectedStatusError) as exc_info:
            fetcher.fetch(URL)
        record = fetcher.retrieve(URL)

    assert exc_info.value.status_code == 500
    assert exc_info.value.url == URL
    assert record is not None
    assert record.body == b"v1"



def test_transport_errors_propagate():
    def origin(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(origin))
    with ConditionalFetcher(client=client) as fetcher:
        with pytest.raises(httpx.ConnectError):
            fetcher.fetch(URL)
        assert fetcher.retrieve(URL) is None



def test_ttl():
    origin = Origin()
    origin.responses.append(httpx.Response(200, content=b"v1"))
    origin.responses.append(httpx.Response(200, content=b"v2"))
    storage = RecordingStorage()

    with make_fetcher(origin, storage=storage, ttl=30) as fetcher:
        fetcher.fetch(URL)
        assert set(storage.ttls.values()) == {30}

        fetcher.fetch(URL, ttl=5)
        assert set(storage.ttls.values()) == {5}



def test_storage_errors_do_not_fail_the_fetch():
    origin = Origin()
    origin.responses.append(httpx.Response(200, content=b"v1"))

    with make_fetcher(origin, storage=BrokenStorage()) as fetcher:
        result = fetcher.fetch(URL)
        record = fetcher.retrieve(URL)

    assert result == FetchResult(status=200, body=b"v1")
    assert record is None
