"""Log and map entry types.

The set is closed: raw bytes, JSON (hashed with the object hash), redactable
JSON (uploaded only, the server adds nonces), and redacted JSON (as returned by
the server, possibly with members redacted). Verifiable entries expose
``leaf_hash()``; uploadable ones expose ``data_for_upload()`` and ``format``,
the URL suffix the server uses to pick its hashing mode.
"""
from __future__ import annotations

import json
from typing import Any, Protocol

from .errors import InvalidObjectError
from .merkle.hashing import leaf_hash
from .merkle.objecthash import object_hash_with_redaction, shed_redactable
from .settings import settings


class MerkleTreeLeaf(Protocol):
    def leaf_hash(self) -> bytes: ...


class VerifiableEntry(MerkleTreeLeaf, Protocol):
    def data(self) -> bytes: ...


class UploadableEntry(Protocol):
    format: str

    def data_for_upload(self) -> bytes: ...


class EntryFactory(Protocol):
    format: str

    def create_from_bytes(self, b: bytes) -> VerifiableEntry: ...


def _parse_json(data: bytes) -> Any:
    try:
        return json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidObjectError("entry is not valid UTF-8 JSON") from exc


def _json_leaf_hash(data: bytes) -> bytes:
    # Deleted map values come back as an empty body
    if not data:
        return leaf_hash(b"")
    return leaf_hash(object_hash_with_redaction(_parse_json(data), settings.vds_redaction_prefix))


class RawDataEntry:
    format = ""

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._lh: bytes | None = None

    def data(self) -> bytes:
        return self._data

    def data_for_upload(self) -> bytes:
        return self._data

    def leaf_hash(self) -> bytes:
        if self._lh is None:
            self._lh = leaf_hash(self._data)
        return self._lh


class JsonEntry:
    """JSON entry hashed by its object hash, so formatting and member order don't matter."""

    format = "/xjson"

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._lh: bytes | None = None

    def data(self) -> bytes:
        return self._data

    def data_for_upload(self) -> bytes:
        return self._data

    def leaf_hash(self) -> bytes:
        if self._lh is None:
            self._lh = _json_leaf_hash(self._data)
        return self._lh


class RedactableJsonEntry:
    """JSON to be stored in redactable form; the server wraps each value with a nonce."""

    format = "/xjson/redactable"

    def __init__(self, data: bytes):
        self._data = bytes(data)

    def data_for_upload(self) -> bytes:
        return self._data


class RedactedJsonEntry:
    """JSON as returned for a redactable entry: nonce-wrapped, some members maybe redacted."""

    def __init__(self, data: bytes):
        self._raw = bytes(data)
        self._shed: bytes | None = None
        self._lh: bytes | None = None

    def data(self) -> bytes:
        """The document with nonces removed and redacted members dropped."""
        if self._shed is None:
            if not self._raw:
                self._shed = b""
            else:
                doc = shed_redactable(_parse_json(self._raw), settings.vds_redaction_prefix)
                self._shed = json.dumps(doc, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        return self._shed

    def leaf_hash(self) -> bytes:
        if self._lh is None:
            self._lh = _json_leaf_hash(self._raw)
        return self._lh


class AddEntryResponse:
    """A leaf known only by its hash, as returned after adding an entry."""

    def __init__(self, leaf_hash: bytes):
        self._lh = bytes(leaf_hash)

    def leaf_hash(self) -> bytes:
        return self._lh


class RawDataEntryFactory:
    format = ""

    def create_from_bytes(self, b: bytes) -> RawDataEntry:
        return RawDataEntry(b)


class JsonEntryFactory:
    format = "/xjson"

    def create_from_bytes(self, b: bytes) -> JsonEntry:
        return JsonEntry(b)


class RedactedJsonEntryFactory:
    format = "/xjson"

    def create_from_bytes(self, b: bytes) -> RedactedJsonEntry:
        return RedactedJsonEntry(b)


RAW_DATA_ENTRY_FACTORY = RawDataEntryFactory()
JSON_ENTRY_FACTORY = JsonEntryFactory()
REDACTED_JSON_ENTRY_FACTORY = RedactedJsonEntryFactory()

__all__ = [
    "MerkleTreeLeaf",
    "VerifiableEntry",
    "UploadableEntry",
    "EntryFactory",
    "RawDataEntry",
    "JsonEntry",
    "RedactableJsonEntry",
    "RedactedJsonEntry",
    "AddEntryResponse",
    "RAW_DATA_ENTRY_FACTORY",
    "JSON_ENTRY_FACTORY",
    "REDACTED_JSON_ENTRY_FACTORY",
]
