"""vdsverify: client-side verification for verifiable logs and sparse Merkle maps.

Proof math lives in ``vdsverify.merkle`` and does no I/O. ``vdsverify.verifiable``
wraps a caller-supplied log or map source so every tree head, proof and entry it
returns is checked before use.
"""
from .entries import (  # noqa: F401
    JSON_ENTRY_FACTORY,
    RAW_DATA_ENTRY_FACTORY,
    REDACTED_JSON_ENTRY_FACTORY,
    JsonEntry,
    RawDataEntry,
    RedactedJsonEntry,
)
from .errors import (  # noqa: F401
    InvalidObjectError,
    InvalidRangeError,
    NotAllEntriesReturnedError,
    NotFoundError,
    VdsError,
    VerificationFailedError,
)
from .merkle import (  # noqa: F401
    ZERO_LOG_TREE_HEAD,
    LogConsistencyProof,
    LogInclusionProof,
    LogTreeHead,
    MapEntryProof,
    MapTreeHead,
    MapTreeState,
    object_hash,
    object_hash_with_std_redaction,
)
from .verifiable import VerifiableLog, VerifiableMap  # noqa: F401
