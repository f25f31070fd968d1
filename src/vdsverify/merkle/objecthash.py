"""Canonical object hash for JSON-like values, with redaction support.

Implements the objecthash scheme (https://github.com/benlaurie/objecthash):
  * Every value hashes to ``SHA256(tag || payload)``.
  * ``n`` null, ``b`` boolean (``1``/``0``), ``u`` string (NFC, UTF-8),
    ``l`` list (concatenated element hashes, order kept), ``d`` dict,
    ``f`` number.
  * Dict entries are ``hash(key) || hash(value)``, sorted as unsigned bytes
    (shorter prefix first) and concatenated, so member order never matters.
  * Numbers are hashed as IEEE-754 doubles: sign, base-2 exponent and the
    mantissa as binary digits. ``123.45`` and ``123.4500`` hash identically.
  * A string starting with the redaction prefix is not hashed: the rest of the
    string is the hex object hash of the redacted sub-object and is used as is.

Redactable documents wrap every dict value as ``[nonce, value]`` so that a
redacted value cannot be brute forced from its hash. ``shed_redactable`` undoes
that wrapping and drops redacted members.
"""
from __future__ import annotations

import binascii
import hashlib
import math
import unicodedata
from functools import cmp_to_key
from typing import Any

from ..errors import InvalidObjectError
from ..settings import STANDARD_REDACTION_PREFIX

MAX_MANTISSA_BITS = 1000


def compare_bytes(a: bytes, b: bytes) -> int:
    """Unsigned lexicographic comparison; a strict prefix sorts first."""
    for x, y in zip(a, b):
        if x != y:
            return x - y
    return len(a) - len(b)


def _tagged(tag: bytes, payload: bytes = b"") -> bytes:
    return hashlib.sha256(tag + payload).digest()


def _float_repr(f: float) -> bytes:
    if math.isnan(f) or math.isinf(f):
        raise InvalidObjectError(f"cannot hash non-finite number {f!r}")
    if f == 0:
        # Covers -0.0 as well
        return b"+0:"
    out = ["+"]
    if f < 0:
        out[0] = "-"
        f = -f
    e = 0
    while f > 1:
        f /= 2.0
        e += 1
    while f <= 0.5:
        f *= 2.0
        e -= 1
    out.append(f"{e}:")
    if f > 1 or f <= 0.5:
        raise InvalidObjectError("number normalization failed")
    n = 0
    while f != 0 and n < MAX_MANTISSA_BITS:
        if f >= 1:
            out.append("1")
            f -= 1.0
        else:
            out.append("0")
        if f >= 1:
            raise InvalidObjectError("number normalization failed")
        f *= 2.0
        n += 1
    if f != 0:
        raise InvalidObjectError("number does not terminate within 1000 binary digits")
    return "".join(out).encode("ascii")


def _hash_float(f: float) -> bytes:
    return _tagged(b"f", _float_repr(f))


def _hash_string(s: str, prefix: str | None) -> bytes:
    if prefix is not None and s.startswith(prefix):
        try:
            return binascii.unhexlify(s[len(prefix):])
        except ValueError as exc:  # binascii.Error is a ValueError
            raise InvalidObjectError("malformed redacted hash") from exc
    try:
        return _tagged(b"u", unicodedata.normalize("NFC", s).encode("utf-8"))
    except UnicodeEncodeError as exc:
        raise InvalidObjectError("string is not encodable as UTF-8") from exc


def _hash_list(items, prefix: str | None) -> bytes:
    h = hashlib.sha256(b"l")
    for item in items:
        h.update(object_hash_with_redaction(item, prefix))
    return h.digest()


def _hash_dict(obj: dict, prefix: str | None) -> bytes:
    entries = []
    for k, v in obj.items():
        if not isinstance(k, str):
            raise InvalidObjectError("object keys must be strings")
        entries.append(_hash_string(k, prefix) + object_hash_with_redaction(v, prefix))
    h = hashlib.sha256(b"d")
    for entry in sorted(entries, key=cmp_to_key(compare_bytes)):
        h.update(entry)
    return h.digest()


def object_hash_with_redaction(o: Any, prefix: str | None) -> bytes:
    """Object hash of ``o`` treating strings that start with ``prefix`` as redacted.

    Pass ``prefix=None`` to disable redaction handling.
    """
    if o is None:
        return _tagged(b"n")
    if o is True:
        return _tagged(b"b", b"1")
    if o is False:
        return _tagged(b"b", b"0")
    if isinstance(o, int):
        try:
            return _hash_float(float(o))
        except OverflowError as exc:
            raise InvalidObjectError("integer too large for a double") from exc
    if isinstance(o, float):
        return _hash_float(o)
    if isinstance(o, str):
        return _hash_string(o, prefix)
    if isinstance(o, (list, tuple)):
        return _hash_list(o, prefix)
    if isinstance(o, dict):
        return _hash_dict(o, prefix)
    raise InvalidObjectError(f"unsupported type for object hash: {type(o)!r}")


def object_hash(o: Any) -> bytes:
    return object_hash_with_redaction(o, None)


def object_hash_with_std_redaction(o: Any) -> bytes:
    return object_hash_with_redaction(o, STANDARD_REDACTION_PREFIX)


def _shed_dict(obj: dict, prefix: str) -> dict:
    rv = {}
    for k, v in obj.items():
        if isinstance(v, list):
            if len(v) != 2:
                raise InvalidObjectError(f"member {k!r} is not a [nonce, value] pair")
            rv[k] = shed_redactable(v[1], prefix)
        elif isinstance(v, str):
            if not v.startswith(prefix):
                raise InvalidObjectError(f"member {k!r} is neither redactable nor redacted")
            # redacted: drop it
        else:
            raise InvalidObjectError(f"member {k!r} is neither redactable nor redacted")
    return rv


def shed_redactable(o: Any, prefix: str) -> Any:
    """Strip redacted members and unwrap ``[nonce, value]`` pairs.

    Used on documents stored in redactable form so normal processing can be
    applied to what remains. Returns a new object; ``o`` is not modified.
    """
    if isinstance(o, list):
        return [shed_redactable(item, prefix) for item in o]
    if isinstance(o, dict):
        return _shed_dict(o, prefix)
    return o


def shed_redactable_with_std_redaction(o: Any) -> Any:
    return shed_redactable(o, STANDARD_REDACTION_PREFIX)


__all__ = [
    "compare_bytes",
    "object_hash",
    "object_hash_with_redaction",
    "object_hash_with_std_redaction",
    "shed_redactable",
    "shed_redactable_with_std_redaction",
    "MAX_MANTISSA_BITS",
]
