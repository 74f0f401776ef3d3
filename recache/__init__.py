from recache._async._fetcher import AsyncConditionalFetcher as AsyncConditionalFetcher
from recache._async._storages import (
    AsyncBaseStorage as AsyncBaseStorage,
    AsyncInMemoryStorage as AsyncInMemoryStorage,
    AsyncRedisStorage as AsyncRedisStorage,
    AsyncSQLiteStorage as AsyncSQLiteStorage,
)
from recache._exceptions import (
    CacheControlError as CacheControlError,
    CacheError as CacheError,
    FetchError as FetchError,
    InconsistentCacheError as InconsistentCacheError,
    ParseError as ParseError,
    UnexpectedStatusError as UnexpectedStatusError,
    ValidationError as ValidationError,
)
from recache._freshness import (
    AnyDecision as AnyDecision,
    FreshnessContext as FreshnessContext,
    FreshnessEvaluator as FreshnessEvaluator,
    Hit as Hit,
    Miss as Miss,
    NotModified as NotModified,
    Stale as Stale,
)
from recache._headers import CacheControl as CacheControl, Headers as Headers, Vary as Vary
from recache._keygen import KeyBuilder as KeyBuilder, build_key as build_key, build_request_key as build_request_key
from recache._lfu_cache import LFUCache as LFUCache
from recache._models import (
    CacheEntry as CacheEntry,
    EntryMeta as EntryMeta,
    FetchResult as FetchResult,
    RemoteCacheRecord as RemoteCacheRecord,
    Request as Request,
)
from recache._response_cache import (
    CacheOptions as CacheOptions,
    CapturingSink as CapturingSink,
    ResponseCache as ResponseCache,
    ResponseSink as ResponseSink,
)
from recache._serializers import BaseSerializer as BaseSerializer, JSONSerializer as JSONSerializer
from recache._sync._fetcher import ConditionalFetcher as ConditionalFetcher
from recache._sync._storages import (
    BaseStorage as BaseStorage,
    InMemoryStorage as InMemoryStorage,
    RedisStorage as RedisStorage,
    SQLiteStorage as SQLiteStorage,
)
from recache._utils import BaseClock as BaseClock, Clock as Clock

__all__ = (
    ## Decisions
    "AnyDecision",
    "Hit",
    "Stale",
    "NotModified",
    "Miss",
    "FreshnessContext",
    "FreshnessEvaluator",
    ## Keys
    "KeyBuilder",
    "build_key",
    "build_request_key",
    ## Models
    "CacheEntry",
    "EntryMeta",
    "FetchResult",
    "RemoteCacheRecord",
    "Request",
    ## Headers
    "CacheControl",
    "Headers",
    "Vary",
    ## Response cache
    "CacheOptions",
    "CapturingSink",
    "ResponseCache",
    "ResponseSink",
    ## Fetchers
    "AsyncConditionalFetcher",
    "ConditionalFetcher",
    ## Storages
    "AsyncBaseStorage",
    "AsyncInMemoryStorage",
    "AsyncRedisStorage",
    "AsyncSQLiteStorage",
    "BaseStorage",
    "InMemoryStorage",
    "RedisStorage",
    "SQLiteStorage",
    "LFUCache",
    ## Serializers
    "BaseSerializer",
    "JSONSerializer",
    ## Clock
    "BaseClock",
    "Clock",
    ## Exceptions
    "CacheError",
    "CacheControlError",
    "ParseError",
    "ValidationError",
    "FetchError",
    "UnexpectedStatusError",
    "InconsistentCacheError",
)

__version__ = "0.1.0"
