"""Merkle proof math: hash primitives, object hash, log and sparse map proofs, audit replay.

Nothing in this package performs I/O; callers fetch proofs and tree heads
themselves and pass plain values in.
"""
from .audit import audit_log_entries, entry_leaf_hash  # noqa: F401
from .hashing import is_pow2, leaf_hash, node_hash  # noqa: F401
from .log import (  # noqa: F401
    ZERO_LOG_TREE_HEAD,
    LogConsistencyProof,
    LogInclusionProof,
    LogTreeHead,
    TreeHead,
    calculate_inclusion_root,
    verify_consistency,
    verify_inclusion,
)
from .objecthash import (  # noqa: F401
    compare_bytes,
    object_hash,
    object_hash_with_redaction,
    object_hash_with_std_redaction,
    shed_redactable,
    shed_redactable_with_std_redaction,
)
from .sparse import (  # noqa: F401
    DefaultLeafTable,
    MapEntryProof,
    MapTreeHead,
    MapTreeState,
    calculate_map_root,
    default_leaf_table,
    key_path,
    verify_map_entry,
)
