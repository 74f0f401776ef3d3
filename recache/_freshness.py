from __future__ import annotations

import logging
import typing as tp
from dataclasses import dataclass

from ._exceptions import CacheControlError
from ._headers import Headers, parse_cache_control
from ._models import EntryMeta
from ._utils import BaseClock, Clock, parse_date

logger = logging.getLogger("recache.freshness")

__all__ = (
    "FreshnessContext",
    "FreshnessEvaluator",
    "Hit",
    "Stale",
    "NotModified",
    "Miss",
    "AnyDecision",
)


@dataclass
class FreshnessContext:
    """
    Per-request conditions the stored entry is checked against.
    """

    max_age: int
    """Maximum acceptable age in seconds. Zero disables the cache for this request."""

    no_cache: bool = False
    if_modified_since: tp.Optional[int] = None
    if_none_match: tp.Optional[str] = None

    @classmethod
    def from_headers(cls, headers: Headers, default_max_age: int) -> "FreshnessContext":
        """
        Builds the context from `Cache-Control`, `If-Modified-Since` and `If-None-Match` request headers.

        Malformed `Cache-Control` directives and `If-Modified-Since` values are ignored.
        A `no-cache` directive is honored even when the rest of the header is malformed.
        """
        max_age = default_max_age
        no_cache = False

        cache_control_values = headers.get_list("cache-control")
        if cache_control_values:
            parsed_max_age, no_cache = _read_cache_control(cache_control_values)
            if parsed_max_age is not None:
                max_age = parsed_max_age

        if_modified_since = None
        if "if-modified-since" in headers:
            if_modified_since = parse_date(headers["if-modified-since"])
            if if_modified_since is None:
                logger.debug("Ignoring malformed If-Modified-Since header %r", headers["if-modified-since"])

        return cls(
            max_age=max_age,
            no_cache=no_cache,
            if_modified_since=if_modified_since,
            if_none_match=headers.get("if-none-match"),
        )


def _read_cache_control(cache_control_values: tp.List[str]) -> tp.Tuple[tp.Optional[int], bool]:
    try:
        cache_control = parse_cache_control(cache_control_values)
    except CacheControlError as exc:
        logger.debug(
            "Malformed Cache-Control header %r (%s), reading its directives one by one.", cache_control_values, exc
        )
    else:
        return cache_control.max_age, bool(cache_control.no_cache)

    max_age: tp.Optional[int] = None
    no_cache = False

    for cache_control_value in cache_control_values:
        for directive in cache_control_value.split(","):
            if not directive.strip():
                continue

            try:
                cache_control = parse_cache_control([directive])
            except CacheControlError:
                # A broken `no-cache` still asks for a fresh response.
                if directive.split("=", 1)[0].strip().lower() == "no-cache":
                    no_cache = True
                logger.debug("Ignoring malformed Cache-Control directive %r", directive)
                continue

            if cache_control.max_age is not None:
                max_age = cache_control.max_age
            no_cache = no_cache or bool(cache_control.no_cache)

    return max_age, no_cache


@dataclass
class Hit:
    meta: EntryMeta


@dataclass
class Stale:
    meta: EntryMeta


@dataclass
class NotModified:
    meta: EntryMeta


@dataclass
class Miss:
    pass


AnyDecision = tp.Union[Hit, Stale, NotModified, Miss]


class FreshnessEvaluator:
    def __init__(self, clock: tp.Optional[BaseClock] = None) -> None:
        self._clock = clock if clock is not None else Clock()

    def needs_lookup(self, ctx: FreshnessContext) -> bool:
        """
        Whether the stored metadata should be fetched at all.

        When caching is disabled for the request, the answer is a miss regardless
        of what is stored, so the backend is not touched.
        """
        return ctx.max_age != 0 and not ctx.no_cache

    def evaluate(self, meta: tp.Optional[EntryMeta], ctx: FreshnessContext) -> AnyDecision:
        """
        Decides what to do with a stored entry. The first matching rule wins:

        1. `max_age` is zero: miss.
        2. The request carries `no-cache`: miss.
        3. Nothing is stored: miss.
        4. The entry is older than `max_age`: stale. Skipped when the age is unknown.
        5. `If-Modified-Since` is not older than the entry: not modified.
        6. `If-None-Match` equals the stored etag: not modified.
        7. Otherwise: hit.
        """
        if ctx.max_age == 0:
            logger.debug("Considering the entry as a miss since max-age is zero.")
            return Miss()

        if ctx.no_cache:
            logger.debug("Considering the entry as a miss since the request contains the no-cache directive.")
            return Miss()

        if meta is None:
            logger.debug("Considering the entry as a miss since no metadata is stored.")
            return Miss()

        if meta.last_modified is not None:
            age = self._clock.now() - meta.last_modified
            if age > ctx.max_age:
                logger.debug(
                    "Considering the entry as stale since its age (%d) exceeds max-age (%d).", age, ctx.max_age
                )
                return Stale(meta)

            if ctx.if_modified_since is not None and meta.last_modified <= ctx.if_modified_since:
                logger.debug("Considering the entry as not modified since If-Modified-Since matches.")
                return NotModified(meta)

        if ctx.if_none_match is not None and ctx.if_none_match == meta.etag:
            logger.debug("Considering the entry as not modified since If-None-Match matches the stored etag.")
            return NotModified(meta)

        logger.debug("Considering the entry as a hit.")
        return Hit(meta)
