"""
Exception hierarchy for the verification layer.

Every divergence is fatal: there is no soft-fail mode. The structured log entry
written before raising is the record of what differed; the exception message
only points at it.
"""

from typing import Optional


class VerificationException(Exception):
    """Base exception for all verification-layer errors."""

    pass


class ConsistencyDivergence(VerificationException):
    """
    Raised when the direct and indirect backends return different results.

    Always preceded by an error-level log entry holding the full dump.
    Never retried and never swallowed.
    """

    pass


class ProtocolFlagMismatch(ConsistencyDivergence):
    """
    Raised when the truncation flag returned with a filtered listing differs
    between backends. Checked before any item is compared.
    """

    def __init__(self, direct_flag: bool, indirect_flag: bool):
        self.direct_flag = direct_flag
        self.indirect_flag = indirect_flag
        super().__init__(
            f"The truncation flag is different - direct {direct_flag}, indirect {indirect_flag}"
        )


class SizeMismatch(ConsistencyDivergence):
    """
    Raised when two multi-item results differ in cardinality.

    Carries both sizes and no element detail.
    """

    def __init__(self, direct_size: int, indirect_size: int):
        self.direct_size = direct_size
        self.indirect_size = indirect_size
        super().__init__(
            f"Lists are not the same size: direct {direct_size}, indirect {indirect_size}"
        )


class MutationFailure(VerificationException):
    """
    Raised when any step of a verified bulk alteration fails.

    The message is the original failure's message; the original exception is
    chained as ``__cause__``.
    """

    def __init__(self, message: str, original: Optional[BaseException] = None):
        self.original = original
        super().__init__(message)


class TransactionStateError(VerificationException):
    """Raised when a transaction scope is used out of order (e.g. committed twice)."""

    pass


class UnclassifiableValueError(TypeError):
    """Raised when a backend result does not map to any ResultValue kind."""

    pass
