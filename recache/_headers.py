from __future__ import annotations

import string
from typing import Any, Dict, Iterable, Iterator, List, Mapping, MutableMapping, Optional, Tuple, Union

from ._exceptions import ParseError, ValidationError

__all__ = (
    "CacheControl",
    "Headers",
    "Vary",
    "parse_cache_control",
)

## Grammar

HTAB = "\t"
SP = " "
obs_text = "".join(chr(i) for i in range(0x80, 0xFF + 1))

tchar = "!#$%&'*+-.^_`|~0123456789" + string.ascii_letters
qdtext = "".join(
    [
        HTAB,
        SP,
        "\x21",
        "".join(chr(i) for i in range(0x23, 0x5B + 1)),
        "".join(chr(i) for i in range(0x5D, 0x7E + 1)),
        obs_text,
    ]
)

TIME_FIELDS = [
    "max_age",
    "max_stale",
    "min_fresh",
]

BOOLEAN_FIELDS = [
    "no_store",
    "no_transform",
    "only_if_cached",
]

LIST_FIELDS = [
    "no_cache",
]


class Headers(MutableMapping[str, str]):
    """
    Case-insensitive, multi-valued header mapping.

    Assigning a key appends a value; reading a key joins all values with ", ".
    """

    def __init__(self, headers: Union[Mapping[str, Union[str, List[str]]], Iterable[Tuple[str, str]], None] = None):
        self._headers: Dict[str, List[str]] = {}
        if headers is None:
            return
        items = headers.items() if isinstance(headers, Mapping) else headers
        for key, value in items:
            for single in [value] if isinstance(value, str) else value:
                self[key] = single

    def get_list(self, key: str) -> Optional[List[str]]:
        return self._headers.get(key.lower(), None)

    def __getitem__(self, key: str) -> str:
        return ", ".join(self._headers[key.lower()])

    def __setitem__(self, key: str, value: str) -> None:
        self._headers.setdefault(key.lower(), []).append(value)

    def __delitem__(self, key: str) -> None:
        del self._headers[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._headers!r})"

    def __eq__(self, other_headers: Any) -> bool:
        return isinstance(other_headers, Headers) and self._headers == other_headers._headers


def strip_ows_around(text: str) -> str:
    return text.strip(" ").strip("\t")


def normalize_directive(text: str) -> str:
    return text.replace("-", "_")


def parse_cache_control(cache_control_values: List[str]) -> "CacheControl":
    directives: Dict[str, Optional[str]] = {}

    for cache_control_value in cache_control_values:
        if "no-cache=" in cache_control_value:
            cache_control_splited = [cache_control_value]
        else:
            cache_control_splited = cache_control_value.split(",")

        for directive in cache_control_splited:
            key: str = ""
            value: Optional[str] = None
            dquote = False

            if not directive:
                raise ParseError("The directive should not be left blank.")

            directive = strip_ows_around(directive)

            if not directive:
                raise ParseError("The directive should not contain only whitespaces.")

            for i, key_char in enumerate(directive):
                if key_char == "=":
                    value = directive[i + 1 :]

                    if not value:
                        raise ParseError("The directive value cannot be left blank.")

                    if value[0] == '"':
                        dquote = True
                    if dquote and (len(value) < 2 or value[-1] != '"'):
                        raise ParseError("Invalid quotes around the value.")

                    if not dquote:
                        for value_char in value:
                            if value_char not in tchar:
                                raise ParseError(
                                    f"The character '{value_char!r}' is not permitted for the unquoted values."
                                )
                    else:
                        for value_char in value[1:-1]:
                            if value_char not in qdtext:
                                raise ParseError(
                                    f"The character '{value_char!r}' is not permitted for the quoted values."
                                )
                    break

                if key_char not in tchar:
                    raise ParseError(f"The character '{key_char!r}' is not permitted in the directive name.")
                key += key_char
            directives[key.lower()] = value
    validated_data = CacheControl.validate(directives)
    return CacheControl(**validated_data)


class Vary:
    def __init__(self, values: List[str]) -> None:
        self.values = values

    @classmethod
    def from_value(cls, vary_values: List[str]) -> "Vary":
        values = []

        for vary_value in vary_values:
            for field_name in vary_value.split(","):
                field_name = field_name.strip().lower()
                if field_name and field_name not in values:
                    values.append(field_name)
        return Vary(values)


class CacheControl:
    """
    Request Cache-Control directives understood by the cache.

    Only `max_age` and `no_cache` drive caching decisions. The other request
    directives are parsed so that malformed values are rejected, and are
    otherwise ignored. Unknown directives are accepted and ignored.
    """

    def __init__(
        self,
        max_age: Optional[int] = None,
        max_stale: Optional[int] = None,
        min_fresh: Optional[int] = None,
        no_cache: Union[bool, List[str]] = False,
        no_store: bool = False,
        no_transform: bool = False,
        only_if_cached: bool = False,
    ) -> None:
        self.max_age = max_age
        self.max_stale = max_stale
        self.min_fresh = min_fresh
        self.no_cache = no_cache
        self.no_store = no_store
        self.no_transform = no_transform
        self.only_if_cached = only_if_cached

    @classmethod
    def validate(cls, directives: Dict[str, Optional[str]]) -> Dict[str, Any]:
        validated_data: Dict[str, Any] = {}

        for key, value in directives.items():
            key = normalize_directive(key)
            if key in TIME_FIELDS:
                if value is None:
                    raise ValidationError(f"The directive '{key}' necessitates a value.")

                if value[0] == '"' or value[-1] == '"':
                    raise ValidationError(f"The argument '{key}' should be an integer, but a quote was found.")

                try:
                    validated_data[key] = int(value)
                except ValueError:
                    raise ValidationError(f"The argument '{key}' should be an integer, but got '{value!r}'.")
            elif key in BOOLEAN_FIELDS:
                if value is not None:
                    raise ValidationError(f"The directive '{key}' should have no value, but it does.")
                validated_data[key] = True
            elif key in LIST_FIELDS:
                if value is None:
                    validated_data[key] = True
                else:
                    values = []
                    for list_value in value.strip('"').split(","):
                        list_value = strip_ows_around(list_value)
                        if not list_value:
                            raise ValidationError("The list value must not be empty.")
                        values.append(list_value)
                    validated_data[key] = values

        return validated_data

    def __repr__(self) -> str:
        fields = []

        for key in TIME_FIELDS:
            value = getattr(self, key)
            if value is not None:
                fields.append(f"{key}={value}")

        for key in BOOLEAN_FIELDS + LIST_FIELDS:
            if getattr(self, key):
                fields.append(key)

        return f"<{type(self).__name__} {', '.join(fields)}>"
