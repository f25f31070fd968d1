"""Proof verification for 256-level sparse Merkle maps.

A key is placed at the leaf addressed by ``SHA256(key)``, read as a big-endian
bit string (``True`` = right branch). Empty subtrees are never materialized:
their hash at every depth is precomputed in the default leaf table, and an
audit path slot of ``None`` means "the sibling is an empty subtree".
"""
from __future__ import annotations

import base64
import hashlib
import threading
from dataclasses import dataclass
from typing import ClassVar

from ..errors import InvalidRangeError, VerificationFailedError
from .hashing import leaf_hash, node_hash
from .log import LogTreeHead
from .objecthash import object_hash

MAP_DEPTH = 256


def key_path(key: bytes) -> list[bool]:
    """Return the 256 branch directions for ``key``, most significant bit first."""
    h = hashlib.sha256(key).digest()
    return [bool((b >> (7 - j)) & 1) for b in h for j in range(8)]


class DefaultLeafTable:
    """Hashes of empty subtrees, indexed by depth (256 = empty leaf, 0 = empty map root).

    Immutable once built. ``shared()`` returns a process-wide instance that is
    built exactly once, even under concurrent first use.
    """

    _shared: ClassVar[DefaultLeafTable | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self) -> None:
        values = [b""] * (MAP_DEPTH + 1)
        values[MAP_DEPTH] = leaf_hash(b"")
        for i in range(MAP_DEPTH - 1, -1, -1):
            values[i] = node_hash(values[i + 1], values[i + 1])
        self._values = tuple(values)

    def __getitem__(self, depth: int) -> bytes:
        return self._values[depth]

    def __len__(self) -> int:
        return len(self._values)

    @property
    def empty_root(self) -> bytes:
        return self._values[0]

    @classmethod
    def shared(cls) -> DefaultLeafTable:
        if cls._shared is None:
            with cls._lock:
                if cls._shared is None:
                    cls._shared = cls()
        return cls._shared


def default_leaf_table() -> DefaultLeafTable:
    return DefaultLeafTable.shared()


@dataclass(frozen=True)
class MapTreeHead:
    """Root hash of a map together with the mutation log head it was built from."""

    root_hash: bytes
    mutation_log: LogTreeHead

    @property
    def tree_size(self) -> int:
        return self.mutation_log.tree_size

    def leaf_hash(self) -> bytes:
        """Leaf hash of this head as an entry of the map's tree head log."""
        ml_hash = self.mutation_log.root_hash
        doc = {
            "map_hash": base64.b64encode(self.root_hash).decode(),
            "mutation_log": {
                "tree_size": self.mutation_log.tree_size,
                "tree_hash": None if ml_hash is None else base64.b64encode(ml_hash).decode(),
            },
        }
        return leaf_hash(object_hash(doc))


@dataclass(frozen=True)
class MapTreeState:
    """A map head plus the tree head log head it has been proven included in."""

    map_head: MapTreeHead
    tree_head_log_head: LogTreeHead

    @property
    def tree_size(self) -> int:
        return self.map_head.tree_size


@dataclass(frozen=True)
class MapEntryProof:
    key: bytes
    value_leaf_hash: bytes | None
    audit_path: tuple[bytes | None, ...]
    tree_size: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "audit_path", tuple(self.audit_path))

    def calculate_root_hash(self, value_leaf_hash: bytes | None = None) -> bytes:
        return calculate_map_root(self, value_leaf_hash)

    def verify(self, head: MapTreeHead) -> None:
        verify_map_entry(self, head)


def calculate_map_root(
    proof: MapEntryProof,
    value_leaf_hash: bytes | None = None,
    defaults: DefaultLeafTable | None = None,
) -> bytes:
    if len(proof.audit_path) != MAP_DEPTH:
        raise InvalidRangeError(f"map audit path must have {MAP_DEPTH} entries, got {len(proof.audit_path)}")
    t = proof.value_leaf_hash if value_leaf_hash is None else value_leaf_hash
    if t is None:
        raise InvalidRangeError("no value leaf hash bound to map proof")
    if defaults is None:
        defaults = DefaultLeafTable.shared()
    kp = key_path(proof.key)
    for level in range(MAP_DEPTH - 1, -1, -1):
        p = proof.audit_path[level]
        if p is None:
            p = defaults[level + 1]
        if kp[level]:
            t = node_hash(p, t)
        else:
            t = node_hash(t, p)
    return t


def verify_map_entry(proof: MapEntryProof, head: MapTreeHead, value_leaf_hash: bytes | None = None) -> None:
    if proof.tree_size != head.mutation_log.tree_size:
        raise VerificationFailedError(
            f"map proof is for tree size {proof.tree_size}, head has {head.mutation_log.tree_size}"
        )
    try:
        calculated = calculate_map_root(proof, value_leaf_hash)
    except InvalidRangeError as exc:
        raise VerificationFailedError(str(exc)) from exc
    if calculated != head.root_hash:
        raise VerificationFailedError("map proof does not match root hash")


__all__ = [
    "MAP_DEPTH",
    "key_path",
    "DefaultLeafTable",
    "default_leaf_table",
    "MapTreeHead",
    "MapTreeState",
    "MapEntryProof",
    "calculate_map_root",
    "verify_map_entry",
]
