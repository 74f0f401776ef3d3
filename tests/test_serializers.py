from recache import EntryMeta, JSONSerializer


def test_json_serializer_headers_keep_order_and_duplicates():
    serializer = JSONSerializer()
    headers = [("Set-Cookie", "a=1"), ("Content-Type", "text/plain"), ("Set-Cookie", "b=2")]

    dumped = serializer.dumps_headers(headers)

    assert dumped == b'[["Set-Cookie", "a=1"], ["Content-Type", "text/plain"], ["Set-Cookie", "b=2"]]'
    assert serializer.loads_headers(dumped) == headers


def test_json_serializer_meta():
    serializer = JSONSerializer()

    dumped = serializer.dumps_meta(EntryMeta(last_modified=1440504000, etag='"abc"'))

    assert dumped == b'{"last_modified": 1440504000, "etag": "\\"abc\\""}'
    assert serializer.loads_meta(dumped) == EntryMeta(last_modified=1440504000, etag='"abc"')
    assert serializer.loads_meta(b"{}") == EntryMeta()


def test_json_serializer_body_is_text_safe():
    serializer = JSONSerializer()
    body = "héllo wörld".encode("utf-8") + b"\x00\xff"

    dumped = serializer.dumps_body(body)

    assert dumped.isascii()
    assert serializer.loads_body(dumped) == body
