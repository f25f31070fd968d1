"""Inclusion and consistency proof verification for append-only Merkle logs.

Proof shapes follow RFC 6962 section 2.1: an inclusion audit path lists the
sibling subtree hashes from the leaf upwards, and a consistency proof lists
the subtree hashes needed to rebuild both the old and the new root. Node
navigation works on ``fn`` (index of the node of interest) and ``sn`` (index
of the last node) at each level, shifting both right as the path is folded.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from ..errors import InvalidRangeError, VerificationFailedError
from .hashing import is_pow2, node_hash


@dataclass(frozen=True)
class TreeHead:
    tree_size: int
    root_hash: bytes | None

    def __post_init__(self) -> None:
        if self.tree_size < 0:
            raise InvalidRangeError(f"negative tree size {self.tree_size}")
        if self.tree_size > 0 and self.root_hash is None:
            raise InvalidRangeError(f"tree size {self.tree_size} needs a root hash")


@dataclass(frozen=True)
class LogTreeHead(TreeHead):
    pass


# Previously-audited state for a caller that has audited nothing yet.
ZERO_LOG_TREE_HEAD = LogTreeHead(0, None)


@dataclass(frozen=True)
class LogInclusionProof:
    tree_size: int
    leaf_index: int
    leaf_hash: bytes | None = None
    audit_path: tuple[bytes, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "audit_path", tuple(self.audit_path))

    def calculate_root_hash(self, leaf_hash: bytes | None = None) -> bytes:
        return calculate_inclusion_root(self, leaf_hash)

    def verify(self, head: TreeHead, leaf_hash: bytes | None = None) -> None:
        verify_inclusion(head, self, leaf_hash)


@dataclass(frozen=True)
class LogConsistencyProof:
    first_size: int
    second_size: int
    audit_path: tuple[bytes, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "audit_path", tuple(self.audit_path))

    def verify(self, first: TreeHead, second: TreeHead) -> None:
        verify_consistency(self, first, second)


def calculate_inclusion_root(proof: LogInclusionProof, leaf_hash: bytes | None = None) -> bytes:
    """Fold the audit path onto ``leaf_hash`` and return the implied root hash.

    ``leaf_hash`` defaults to the hash carried by the proof; proofs fetched by
    index carry none and the caller must supply it. Raises InvalidRangeError if
    the index is out of range or the path has the wrong length.
    """
    r = proof.leaf_hash if leaf_hash is None else leaf_hash
    if r is None:
        raise InvalidRangeError("no leaf hash bound to inclusion proof")
    if proof.leaf_index < 0 or proof.leaf_index >= proof.tree_size:
        raise InvalidRangeError(
            f"leaf index {proof.leaf_index} out of range for tree size {proof.tree_size}"
        )
    fn = proof.leaf_index
    sn = proof.tree_size - 1
    for p in proof.audit_path:
        if fn == sn or fn & 1:
            r = node_hash(p, r)
            while not (fn == 0 or fn & 1):
                fn >>= 1
                sn >>= 1
        else:
            r = node_hash(r, p)
        fn >>= 1
        sn >>= 1
    if sn != 0:
        raise InvalidRangeError("audit path too short for tree size")
    return r


def verify_inclusion(head: TreeHead, proof: LogInclusionProof, leaf_hash: bytes | None = None) -> None:
    """Check that ``proof`` reproduces ``head``; raise VerificationFailedError if not."""
    if head.tree_size != proof.tree_size:
        raise VerificationFailedError(
            f"proof is for tree size {proof.tree_size}, head has {head.tree_size}"
        )
    try:
        calculated = calculate_inclusion_root(proof, leaf_hash)
    except InvalidRangeError as exc:
        raise VerificationFailedError(str(exc)) from exc
    if calculated != head.root_hash:
        raise VerificationFailedError("inclusion proof does not match root hash")


def verify_consistency(proof: LogConsistencyProof, first: TreeHead, second: TreeHead) -> None:
    """Check that ``second`` is an append-only extension of ``first``.

    The server omits the old root from the path when ``first_size`` is a power
    of two, so it is put back here before folding.
    """
    if first.tree_size != proof.first_size or second.tree_size != proof.second_size:
        raise VerificationFailedError("consistency proof does not match tree sizes")
    if proof.first_size < 1 or proof.first_size > proof.second_size:
        raise VerificationFailedError(
            f"invalid consistency range {proof.first_size}..{proof.second_size}"
        )
    if proof.first_size == proof.second_size:
        # PROOF(m, D[m]) is empty; the heads must simply agree
        if proof.audit_path:
            raise VerificationFailedError("consistency proof between equal sizes must be empty")
        if first.root_hash != second.root_hash:
            raise VerificationFailedError("two different root hashes for the same tree size")
        return
    path = list(proof.audit_path)
    if is_pow2(proof.first_size):
        path.insert(0, first.root_hash)

    fn = proof.first_size - 1
    sn = proof.second_size - 1
    while fn & 1:
        fn >>= 1
        sn >>= 1

    if not path or path[0] is None:
        raise VerificationFailedError("empty consistency proof")

    fr = sr = path[0]
    for p in path[1:]:
        if sn == 0:
            raise VerificationFailedError("consistency proof too long")
        if fn == sn or fn & 1:
            fr = node_hash(p, fr)
            sr = node_hash(p, sr)
            while not (fn == 0 or fn & 1):
                fn >>= 1
                sn >>= 1
        else:
            sr = node_hash(sr, p)
        fn >>= 1
        sn >>= 1

    if sn != 0:
        raise VerificationFailedError("consistency proof too short")
    if fr != first.root_hash:
        raise VerificationFailedError("consistency proof does not match first root hash")
    if sr != second.root_hash:
        raise VerificationFailedError("consistency proof does not match second root hash")


__all__ = [
    "TreeHead",
    "LogTreeHead",
    "ZERO_LOG_TREE_HEAD",
    "LogInclusionProof",
    "LogConsistencyProof",
    "calculate_inclusion_root",
    "verify_inclusion",
    "verify_consistency",
]
