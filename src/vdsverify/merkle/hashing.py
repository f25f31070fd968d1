"""Merkle tree hash primitives (RFC 6962 style domain separation).

Leaves are hashed as ``SHA256(0x00 || data)`` and interior nodes as
``SHA256(0x01 || left || right)`` so a leaf can never be confused with a node.
The digest is fixed for the life of a tree; changing it invalidates every proof.
"""
from __future__ import annotations

import hashlib

LEAF_PREFIX = b"\x00"
NODE_PREFIX = b"\x01"


def _h(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def leaf_hash(data: bytes) -> bytes:
    return _h(LEAF_PREFIX + data)


def node_hash(left: bytes, right: bytes) -> bytes:
    return _h(NODE_PREFIX + left + right)


def is_pow2(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


__all__ = ["leaf_hash", "node_hash", "is_pow2", "LEAF_PREFIX", "NODE_PREFIX"]
