"""
Verification layer.

The dispatcher lives in ``catalog_parity.verification.dispatcher`` and the
backend contract in ``catalog_parity.verification.requests``; only the error
types are re-exported here so lower layers can import them freely.
"""

from .exceptions import (
    ConsistencyDivergence,
    MutationFailure,
    ProtocolFlagMismatch,
    SizeMismatch,
    TransactionStateError,
    UnclassifiableValueError,
    VerificationException,
)

__all__ = [
    "VerificationException",
    "ConsistencyDivergence",
    "ProtocolFlagMismatch",
    "SizeMismatch",
    "MutationFailure",
    "TransactionStateError",
    "UnclassifiableValueError",
]
