from __future__ import annotations


class VdsError(Exception):
    """Base class for verification errors raised by this package."""


class InvalidRangeError(VdsError):
    """Proof indices or sizes are out of bounds or structurally inconsistent."""


class VerificationFailedError(VdsError):
    """A cryptographic check did not hold."""


class InvalidObjectError(VdsError, ValueError):
    """Input to the object hash or shed operations is malformed."""


class NotAllEntriesReturnedError(VdsError):
    """The entry source yielded fewer leaves than the requested range."""


class NotFoundError(VdsError):
    """Raised by a log or map source when the requested object is unknown."""


__all__ = [
    "VdsError",
    "InvalidRangeError",
    "VerificationFailedError",
    "InvalidObjectError",
    "NotAllEntriesReturnedError",
    "NotFoundError",
]
