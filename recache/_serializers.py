import base64
import json
import typing as tp

from ._models import EntryMeta

__all__ = ("BaseSerializer", "JSONSerializer")

Headers = tp.List[tp.Tuple[str, str]]


class BaseSerializer:
    """
    Converts cache sub-entries to and from the bytes kept by a storage backend.
    """

    def dumps_headers(self, headers: Headers) -> bytes:
        raise NotImplementedError()

    def loads_headers(self, data: bytes) -> Headers:
        raise NotImplementedError()

    def dumps_meta(self, meta: EntryMeta) -> bytes:
        raise NotImplementedError()

    def loads_meta(self, data: bytes) -> EntryMeta:
        raise NotImplementedError()

    def dumps_body(self, body: bytes) -> bytes:
        raise NotImplementedError()

    def loads_body(self, data: bytes) -> bytes:
        raise NotImplementedError()

    def dumps_text(self, text: str) -> bytes:
        return text.encode("utf-8")

    def loads_text(self, data: bytes) -> str:
        return data.decode("utf-8")


class JSONSerializer(BaseSerializer):
    """
    A json-based serializer.

    Bodies are base64 encoded, so every stored value is ASCII text and survives
    backends that only keep text-safe values.
    """

    def dumps_headers(self, headers: Headers) -> bytes:
        return json.dumps([[key, value] for key, value in headers]).encode("utf-8")

    def loads_headers(self, data: bytes) -> Headers:
        return [(key, value) for key, value in json.loads(data)]

    def dumps_meta(self, meta: EntryMeta) -> bytes:
        return json.dumps({"last_modified": meta.last_modified, "etag": meta.etag}).encode("utf-8")

    def loads_meta(self, data: bytes) -> EntryMeta:
        meta_dict = json.loads(data)
        return EntryMeta(last_modified=meta_dict.get("last_modified"), etag=meta_dict.get("etag"))

    def dumps_body(self, body: bytes) -> bytes:
        return base64.b64encode(body)

    def loads_body(self, data: bytes) -> bytes:
        return base64.b64decode(data)
