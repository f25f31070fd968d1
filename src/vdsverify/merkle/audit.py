"""Replay a contiguous range of log leaves into a root hash.

The replay keeps a stack of completed subtree hashes. After leaf ``idx`` is
pushed, one pair is merged for every trailing 1-bit of ``idx``, so the stack
always holds the perfect subtrees that make up the tree built so far (largest
at the bottom). Folding the stack from the top yields the root hash.

A replay can resume from a previously audited head of size ``m`` using the
inclusion proof of leaf ``m`` in a tree of size ``m + 1``: that path is exactly
the list of perfect subtrees of the size-``m`` tree, smallest first.
"""
from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterable
from typing import Any

from ..errors import InvalidRangeError, NotAllEntriesReturnedError, VerificationFailedError
from .hashing import leaf_hash, node_hash
from .log import LogInclusionProof, TreeHead

Auditor = Callable[[int, Any], None]


def entry_leaf_hash(entry: Any) -> bytes:
    """Leaf hash of a raw ``bytes`` leaf or of anything with a ``leaf_hash()`` method."""
    if isinstance(entry, (bytes, bytearray, memoryview)):
        return leaf_hash(bytes(entry))
    return entry.leaf_hash()


def _seed_stack(prev: TreeHead, frontier_proof: LogInclusionProof | None) -> list[bytes]:
    if frontier_proof is None:
        raise InvalidRangeError(f"resuming from tree size {prev.tree_size} needs a frontier proof")
    if frontier_proof.leaf_index != prev.tree_size or frontier_proof.tree_size != prev.tree_size + 1:
        raise InvalidRangeError(
            f"frontier proof must be for leaf {prev.tree_size} in tree size {prev.tree_size + 1}"
        )
    first_hash = None
    for b in frontier_proof.audit_path:
        first_hash = b if first_hash is None else node_hash(b, first_hash)
    if first_hash is None or first_hash != prev.root_hash:
        raise VerificationFailedError("frontier proof does not match previously audited root")
    return list(reversed(frontier_proof.audit_path))


def audit_log_entries(
    prev: TreeHead | None,
    head: TreeHead,
    entries: Iterable[Any],
    auditor: Auditor | None = None,
    frontier_proof: LogInclusionProof | None = None,
) -> TreeHead:
    """Verify that ``entries`` extend ``prev`` to exactly ``head``.

    ``entries`` must yield the leaves ``prev.tree_size .. head.tree_size - 1`` in
    order, either as raw bytes or as entry objects. ``auditor(idx, entry)`` sees
    each entry before it is hashed; whatever it raises aborts the replay
    unchanged. Pass ``None`` or the zero head for ``prev`` to audit from the start.

    Returns ``head`` once verified, so callers can persist it for the next run.
    """
    start = 0 if prev is None else prev.tree_size
    if start > head.tree_size:
        raise InvalidRangeError(f"previous tree size {start} is beyond tree size {head.tree_size}")
    if start == head.tree_size:
        if start > 0 and prev.root_hash != head.root_hash:
            raise VerificationFailedError("same tree size but different root hashes")
        return head

    stack: list[bytes] = []
    if start > 0:
        stack = _seed_stack(prev, frontier_proof)
        logging.debug("resuming log audit from tree size %d", start)

    idx = start
    for entry in itertools.islice(entries, head.tree_size - start):
        if auditor is not None:
            auditor(idx, entry)
        stack.append(entry_leaf_hash(entry))
        z = idx
        while z & 1:
            right = stack.pop()
            left = stack.pop()
            stack.append(node_hash(left, right))
            z >>= 1
        idx += 1

    if idx != head.tree_size:
        raise NotAllEntriesReturnedError(
            f"expected entries up to {head.tree_size}, source stopped at {idx}"
        )

    root = stack.pop()
    while stack:
        root = node_hash(stack.pop(), root)
    if root != head.root_hash:
        raise VerificationFailedError("replayed entries do not match root hash")
    logging.debug("audited log entries %d..%d", start, head.tree_size)
    return head


__all__ = ["Auditor", "audit_log_entries", "entry_leaf_hash"]
