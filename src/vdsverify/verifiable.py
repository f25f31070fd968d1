"""Verified access to a remote log or map through a caller-supplied source.

The sources are the transport seam: anything that can fetch tree heads,
proofs and entries (an HTTP client, a local mirror, a test double) and that
raises ``NotFoundError`` for unknown objects. Every value a source returns is
checked here before it is handed back, so a source only needs to be available,
never trusted.

Typical auditor loop::

    log = VerifiableLog(source)
    prev = load_previous_head() or ZERO_LOG_TREE_HEAD
    head = log.verified_latest_tree_head(prev)
    log.verify_entries(prev, head, RAW_DATA_ENTRY_FACTORY, audit_entry)
    save_head(head)
"""
from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Protocol

from .entries import EntryFactory, MerkleTreeLeaf, VerifiableEntry
from .errors import InvalidRangeError, NotAllEntriesReturnedError, NotFoundError, VerificationFailedError
from .merkle.audit import Auditor, audit_log_entries
from .merkle.log import LogConsistencyProof, LogInclusionProof, LogTreeHead, verify_inclusion
from .merkle.sparse import MapEntryProof, MapTreeHead, MapTreeState, verify_map_entry
from .settings import settings

# Tree size meaning "the latest tree head"
HEAD = 0


class LogSource(Protocol):
    def tree_head(self, tree_size: int = HEAD) -> LogTreeHead: ...

    def inclusion_proof(self, tree_size: int, leaf_hash: bytes) -> LogInclusionProof: ...

    def inclusion_proof_by_index(self, tree_size: int, leaf_index: int) -> LogInclusionProof: ...

    def consistency_proof(self, first_size: int, second_size: int) -> LogConsistencyProof: ...

    def entries(self, begin: int, end: int) -> Iterable[bytes]: ...


class MapSource(Protocol):
    def tree_head(self, tree_size: int = HEAD) -> MapTreeHead: ...

    def get(self, key: bytes, tree_size: int) -> tuple[bytes, MapEntryProof]: ...

    def mutation_log(self) -> LogSource: ...

    def tree_head_log(self) -> LogSource: ...


class InclusionStatus(enum.Enum):
    PRESENT = "present"
    NOT_YET_SEQUENCED = "not_yet_sequenced"


@dataclass(frozen=True)
class InclusionResult:
    status: InclusionStatus
    head: LogTreeHead
    proof: LogInclusionProof | None = None

    @property
    def present(self) -> bool:
        return self.status is InclusionStatus.PRESENT


def iter_batched(
    fetch_batch: Callable[[int, int], Sequence[bytes]],
    begin: int,
    end: int,
    batch_size: int | None = None,
) -> Iterator[bytes]:
    """Lazily pull entries ``begin .. end - 1`` through ``fetch_batch(start, stop)``.

    A batch may be shorter than requested (the next request resumes where it
    stopped), but an empty batch before ``end`` raises NotAllEntriesReturnedError.
    """
    if batch_size is None:
        batch_size = settings.vds_entry_batch_size
    if batch_size < 1:
        raise ValueError(f"batch size must be at least 1, got {batch_size}")
    cursor = begin
    while cursor < end:
        stop = min(cursor + batch_size, end)
        batch = fetch_batch(cursor, stop)
        if not batch:
            raise NotAllEntriesReturnedError(f"source returned no entries at index {cursor}")
        for b in batch[: stop - cursor]:
            yield b
            cursor += 1


class VerifiableLog:
    def __init__(self, source: LogSource):
        self.source = source

    def tree_head(self, tree_size: int = HEAD) -> LogTreeHead:
        """Unverified tree head straight from the source."""
        return self.source.tree_head(tree_size)

    def verify_inclusion(self, head: LogTreeHead, leaf: MerkleTreeLeaf) -> LogInclusionProof:
        lh = leaf.leaf_hash()
        proof = self.source.inclusion_proof(head.tree_size, lh)
        verify_inclusion(head, proof, lh)
        return proof

    def check_inclusion(self, head: LogTreeHead, leaf: MerkleTreeLeaf) -> InclusionResult:
        """Like verify_inclusion, but "not sequenced yet" is a result rather than an error.

        A proof that is served but does not verify still raises VerificationFailedError.
        """
        if head.tree_size == 0:
            return InclusionResult(InclusionStatus.NOT_YET_SEQUENCED, head)
        lh = leaf.leaf_hash()
        try:
            proof = self.source.inclusion_proof(head.tree_size, lh)
        except (NotFoundError, InvalidRangeError):
            logging.debug("leaf %s not in tree size %d", lh.hex(), head.tree_size)
            return InclusionResult(InclusionStatus.NOT_YET_SEQUENCED, head)
        verify_inclusion(head, proof, lh)
        return InclusionResult(InclusionStatus.PRESENT, head, proof)

    def verify_consistency(self, a: LogTreeHead, b: LogTreeHead) -> None:
        """Prove that the larger of two heads extends the smaller (either order)."""
        if a.tree_size <= 0 or b.tree_size <= 0:
            raise InvalidRangeError("consistency needs two non-empty tree heads")
        if a.tree_size == b.tree_size:
            if a.root_hash != b.root_hash:
                raise VerificationFailedError(f"two different root hashes for tree size {a.tree_size}")
            return
        first, second = (a, b) if a.tree_size < b.tree_size else (b, a)
        proof = self.source.consistency_proof(first.tree_size, second.tree_size)
        proof.verify(first, second)
        logging.debug("verified consistency %d -> %d", first.tree_size, second.tree_size)

    def verified_tree_head(self, prev: LogTreeHead | None, tree_size: int) -> LogTreeHead:
        """Fetch a tree head and prove it consistent with ``prev``.

        ``prev`` of ``None`` or the zero head skips the consistency check. The
        requested size may be older or newer than ``prev``.
        """
        if tree_size != HEAD and prev is not None and prev.tree_size == tree_size:
            return prev
        head = self.source.tree_head(tree_size)
        if prev is not None and prev.tree_size > 0:
            self.verify_consistency(prev, head)
        return head

    def verified_latest_tree_head(self, prev: LogTreeHead | None) -> LogTreeHead:
        head = self.verified_tree_head(prev, HEAD)
        if prev is not None and head.tree_size <= prev.tree_size:
            return prev
        return head

    def verify_supplied_inclusion_proof(self, prev: LogTreeHead | None, proof: LogInclusionProof) -> LogTreeHead:
        """Verify a proof obtained elsewhere, fetching (and checking) the head it needs.

        Returns the head used, which may be older than ``prev``.
        """
        head = self.verified_tree_head(prev, proof.tree_size)
        proof.verify(head)
        return head

    def verify_entries(
        self,
        prev: LogTreeHead | None,
        head: LogTreeHead,
        factory: EntryFactory,
        auditor: Auditor | None = None,
    ) -> LogTreeHead:
        """Fetch every entry after ``prev`` up to ``head`` and prove they produce ``head``."""
        start = 0 if prev is None else prev.tree_size
        frontier = None
        if 0 < start < head.tree_size:
            frontier = self.source.inclusion_proof_by_index(start + 1, start)
        entries = (factory.create_from_bytes(b) for b in self.source.entries(start, head.tree_size))
        return audit_log_entries(prev, head, entries, auditor, frontier)


@dataclass(frozen=True)
class MapEntryResponse:
    key: bytes
    value: VerifiableEntry
    proof: MapEntryProof

    @property
    def tree_size(self) -> int:
        return self.proof.tree_size

    def verify(self, head: MapTreeHead) -> None:
        verify_map_entry(self.proof, head, self.value.leaf_hash())


class VerifiableMap:
    def __init__(self, source: MapSource):
        self.source = source

    def mutation_log(self) -> VerifiableLog:
        return VerifiableLog(self.source.mutation_log())

    def tree_head_log(self) -> VerifiableLog:
        return VerifiableLog(self.source.tree_head_log())

    def tree_head(self, tree_size: int = HEAD) -> MapTreeHead:
        return self.source.tree_head(tree_size)

    def get(self, key: bytes, tree_size: int, factory: EntryFactory) -> MapEntryResponse:
        """Unverified value and proof for ``key``; call ``verify`` on the result."""
        raw, proof = self.source.get(key, tree_size)
        return MapEntryResponse(key, factory.create_from_bytes(raw), proof)

    def verified_get(self, key: bytes, state: MapTreeState, factory: EntryFactory) -> VerifiableEntry:
        resp = self.get(key, state.tree_size, factory)
        resp.verify(state.map_head)
        return resp.value

    def verified_map_state(self, prev: MapTreeState | None, tree_size: int) -> MapTreeState:
        """Fetch a map head, prove its mutation log extends ``prev`` and that it was published.

        Publication means inclusion in the latest (verified) head of the map's
        tree head log.
        """
        if tree_size != HEAD and prev is not None and prev.tree_size == tree_size:
            return prev
        map_head = self.source.tree_head(tree_size)
        if prev is not None and prev.tree_size > 0:
            self.mutation_log().verify_consistency(prev.map_head.mutation_log, map_head.mutation_log)

        thl = self.tree_head_log()
        thl_head = thl.verified_latest_tree_head(None if prev is None else prev.tree_head_log_head)
        thl.verify_inclusion(thl_head, map_head)
        logging.debug("verified map state at size %d", map_head.tree_size)
        return MapTreeState(map_head, thl_head)

    def verified_latest_map_state(self, prev: MapTreeState | None) -> MapTreeState:
        state = self.verified_map_state(prev, HEAD)
        if prev is not None and state.tree_size <= prev.tree_size:
            return prev
        return state


__all__ = [
    "HEAD",
    "LogSource",
    "MapSource",
    "InclusionStatus",
    "InclusionResult",
    "iter_batched",
    "VerifiableLog",
    "VerifiableMap",
    "MapEntryResponse",
]
