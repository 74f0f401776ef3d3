import hashlib

import pytest

from recache import Headers, KeyBuilder, build_key, build_request_key


def sha1(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def test_key_without_vary_is_the_hashed_path():
    key = build_key("/docs/foo", [], {})

    assert key == "response-cache:" + sha1("/docs/foo")


def test_key_includes_vary_header_values():
    key = build_key("/docs/foo", ["Accept-Language"], {"accept-language": "en"})

    assert key == "response-cache:" + sha1("/docs/foo|accept-language: en")


def test_key_is_deterministic():
    headers = Headers({"Accept-Language": "en", "Accept-Encoding": "gzip"})

    first = build_key("/docs/foo", ["Accept-Language", "Accept-Encoding"], headers)
    second = build_key("/docs/foo", ["Accept-Language", "Accept-Encoding"], headers)

    assert first == second


@pytest.mark.parametrize(
    "vary",
    [
        ["Accept-Encoding", "Accept-Language"],
        ["accept-language", "ACCEPT-ENCODING"],
        [" Accept-Language ,Accept-Encoding"],
        ["Accept-Language, Accept-Encoding, accept-language"],
    ],
)
def test_vary_order_and_case_do_not_affect_the_key(vary):
    headers = Headers({"Accept-Language": "en", "Accept-Encoding": "gzip"})

    assert build_key("/docs/foo", vary, headers) == build_key(
        "/docs/foo", ["Accept-Encoding", "Accept-Language"], headers
    )


def test_different_vary_header_value_changes_the_key():
    english = build_key("/docs/foo", ["Accept-Language"], Headers({"Accept-Language": "en"}))
    german = build_key("/docs/foo", ["Accept-Language"], Headers({"Accept-Language": "de"}))

    assert english != german


def test_headers_not_listed_in_vary_are_ignored():
    first = build_key("/docs/foo", ["Accept-Language"], Headers({"Accept-Language": "en", "User-Agent": "a"}))
    second = build_key("/docs/foo", ["Accept-Language"], Headers({"Accept-Language": "en", "User-Agent": "b"}))

    assert first == second


def test_absent_header_participates_in_the_key():
    absent = build_key("/docs/foo", ["Accept-Language"], Headers())
    empty = build_key("/docs/foo", ["Accept-Language"], Headers({"Accept-Language": ""}))

    assert absent == "response-cache:" + sha1("/docs/foo|accept-language: <absent>")
    assert absent != empty
    assert absent != build_key("/docs/foo", [], Headers())


def test_key_accepts_a_lookup_callable():
    key = build_key("/docs/foo", ["X-Theme"], lambda name: "dark" if name == "x-theme" else None)

    assert key == "response-cache:" + sha1("/docs/foo|x-theme: dark")


def test_key_builder_uses_its_vary_names():
    builder = KeyBuilder(["Accept-Language"])

    assert builder.vary_names == ["accept-language"]
    assert builder("/docs/foo", Headers({"Accept-Language": "en"})) == build_key(
        "/docs/foo", ["Accept-Language"], {"accept-language": "en"}
    )


def test_request_key_is_namespaced_apart_from_response_keys():
    key = build_request_key("https://example.com/feed.xml")

    assert key == "request-cache:" + hashlib.md5(b"https://example.com/feed.xml").hexdigest()
    assert not key.startswith("response-cache:")


def test_separator_inside_a_value_cannot_pose_as_another_header():
    injected = build_key("/p", ["a", "b"], {"a": "1|b: 2"})
    split = build_key("/p", ["a", "b"], {"a": "1", "b": "2|b: <absent>"})
    plain = build_key("/p", ["a", "b"], {"a": "1", "b": "2"})

    assert len({injected, split, plain}) == 3
    assert injected == "response-cache:" + sha1("/p|a: 1\\|b: 2|b: <absent>")


def test_backslashes_in_values_are_escaped():
    trailing = build_key("/p", ["a", "b"], {"a": "1\\", "b": "2"})
    escaped_separator = build_key("/p", ["a", "b"], {"a": "1\\|b: 2"})

    assert trailing != escaped_separator
    assert trailing == "response-cache:" + sha1("/p|a: 1\\\\|b: 2")


def test_value_equal_to_the_absent_marker_differs_from_a_missing_header():
    missing = build_key("/docs/foo", ["Accept-Language"], Headers())
    literal = build_key("/docs/foo", ["Accept-Language"], Headers({"Accept-Language": "<absent>"}))

    assert missing != literal
