"""JSON documents for tree heads, proofs and entries.

Hashes and keys are hex; entry payloads are base64 in ``leaf_data`` /
``value``, matching the log servers' entry listing format.
"""
from __future__ import annotations

import base64
import binascii
from typing import Annotated

from pydantic import BaseModel, Field, field_validator, model_validator

from .merkle.log import LogConsistencyProof, LogInclusionProof, LogTreeHead
from .merkle.sparse import MAP_DEPTH, MapEntryProof, MapTreeHead

HexStr = Annotated[str, Field(pattern=r"^(?:[0-9a-fA-F]{2})*$")]


def _check_b64(v: str) -> str:
    try:
        base64.b64decode(v, validate=True)
    except binascii.Error as exc:
        raise ValueError("not valid base64") from exc
    return v


class TreeHeadDocument(BaseModel):
    tree_size: int = Field(ge=0)
    tree_hash: HexStr | None = None

    @model_validator(mode="after")
    def _hash_unless_empty(self) -> TreeHeadDocument:
        if self.tree_size > 0 and self.tree_hash is None:
            raise ValueError("tree_hash is required when tree_size > 0")
        return self

    def to_tree_head(self) -> LogTreeHead:
        return LogTreeHead(self.tree_size, None if self.tree_hash is None else bytes.fromhex(self.tree_hash))


class MapTreeHeadDocument(BaseModel):
    map_hash: HexStr
    mutation_log: TreeHeadDocument

    def to_map_tree_head(self) -> MapTreeHead:
        return MapTreeHead(bytes.fromhex(self.map_hash), self.mutation_log.to_tree_head())


class InclusionProofDocument(BaseModel):
    tree_size: int = Field(ge=0)
    leaf_index: int = Field(ge=0)
    leaf_hash: HexStr | None = None
    proof: list[HexStr] = Field(default_factory=list)

    def to_proof(self) -> LogInclusionProof:
        return LogInclusionProof(
            tree_size=self.tree_size,
            leaf_index=self.leaf_index,
            leaf_hash=None if self.leaf_hash is None else bytes.fromhex(self.leaf_hash),
            audit_path=tuple(bytes.fromhex(p) for p in self.proof),
        )


class ConsistencyProofDocument(BaseModel):
    first_tree_size: int = Field(ge=0)
    second_tree_size: int = Field(ge=0)
    proof: list[HexStr] = Field(default_factory=list)

    def to_proof(self) -> LogConsistencyProof:
        return LogConsistencyProof(
            self.first_tree_size,
            self.second_tree_size,
            tuple(bytes.fromhex(p) for p in self.proof),
        )


class MapEntryProofDocument(BaseModel):
    key: HexStr
    value: str = ""  # base64, empty for an unset key
    tree_size: int = Field(ge=0)
    # Only non-default levels are listed; JSON object keys are level numbers
    proof: dict[int, HexStr] = Field(default_factory=dict)

    @field_validator("proof")
    @classmethod
    def _levels_in_range(cls, v: dict[int, str]) -> dict[int, str]:
        bad = [level for level in v if not 0 <= level < MAP_DEPTH]
        if bad:
            raise ValueError(f"map proof levels out of range 0..{MAP_DEPTH - 1}: {sorted(bad)}")
        return v

    @field_validator("value")
    @classmethod
    def _value_b64(cls, v: str) -> str:
        return _check_b64(v)

    @property
    def value_bytes(self) -> bytes:
        return base64.b64decode(self.value)

    def to_proof(self, value_leaf_hash: bytes | None = None) -> MapEntryProof:
        path: list[bytes | None] = [None] * MAP_DEPTH
        for level, h in self.proof.items():
            path[level] = bytes.fromhex(h)
        return MapEntryProof(bytes.fromhex(self.key), value_leaf_hash, tuple(path), self.tree_size)


class EntryDocument(BaseModel):
    leaf_data: str

    @field_validator("leaf_data")
    @classmethod
    def _leaf_data_b64(cls, v: str) -> str:
        return _check_b64(v)

    @property
    def data(self) -> bytes:
        return base64.b64decode(self.leaf_data)


__all__ = [
    "TreeHeadDocument",
    "MapTreeHeadDocument",
    "InclusionProofDocument",
    "ConsistencyProofDocument",
    "MapEntryProofDocument",
    "EntryDocument",
]
