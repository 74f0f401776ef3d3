from __future__ import annotations

import typing as tp

from ._headers import Vary
from ._utils import hexdigest

__all__ = ("ABSENT", "RESPONSE_KEY_PREFIX", "REQUEST_KEY_PREFIX", "build_key", "build_request_key", "KeyBuilder")

RESPONSE_KEY_PREFIX = "response-cache:"
REQUEST_KEY_PREFIX = "request-cache:"
ABSENT = "<absent>"
SEPARATOR = "|"

HeaderLookup = tp.Callable[[str], tp.Optional[str]]


def normalize_vary_names(vary_names: tp.Iterable[str]) -> tp.List[str]:
    """
    Lowercase, strip and sort the header names listed in a Vary directive.

    Entries may themselves be comma-separated, as in a raw `Vary` header value.
    """
    return sorted(Vary.from_value(list(vary_names)).values)


def escape_key_part(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace(SEPARATOR, "\\" + SEPARATOR)
    # A literal value equal to the marker must not match a missing header.
    return "\\" + escaped if escaped == ABSENT else escaped


def build_key(
    path: str,
    vary_names: tp.Iterable[str],
    header_lookup: tp.Union[HeaderLookup, tp.Mapping[str, str]],
    prefix: str = RESPONSE_KEY_PREFIX,
) -> str:
    """
    Derives a deterministic cache key from a request path and the values of the varying request headers.

    A header that is missing from the request contributes the `ABSENT` marker,
    so that its presence or absence also partitions the key space.
    Backslashes and separators inside header names and values are escaped,
    so a value can never pose as another header's part.

    Example:
        ```python
        build_key("/docs/foo", ["Accept-Language"], {"accept-language": "en"})
        # 'response-cache:' + sha1("/docs/foo|accept-language: en")
        ```
    """
    lookup = header_lookup if callable(header_lookup) else header_lookup.get

    key_parts = [path]
    for name in normalize_vary_names(vary_names):
        value = lookup(name)
        key_parts.append(f"{escape_key_part(name)}: {ABSENT if value is None else escape_key_part(value)}")

    return prefix + hexdigest(SEPARATOR.join(key_parts), "sha1")


def build_request_key(url: str) -> str:
    return REQUEST_KEY_PREFIX + hexdigest(url, "md5")


class KeyBuilder:
    """
    Builds response cache keys for a fixed set of Vary header names.
    """

    def __init__(self, vary_names: tp.Optional[tp.Iterable[str]] = None, prefix: str = RESPONSE_KEY_PREFIX) -> None:
        self.vary_names = normalize_vary_names(vary_names or [])
        self.prefix = prefix

    def __call__(self, path: str, header_lookup: tp.Union[HeaderLookup, tp.Mapping[str, str]]) -> str:
        return build_key(path, self.vary_names, header_lookup, prefix=self.prefix)
