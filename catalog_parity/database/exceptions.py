"""
Exception hierarchy for catalog backend operations.

Backends raise these for failures of their own; the verification layer
propagates them verbatim, except inside a bulk alteration where they are
wrapped into a single mutation failure.
"""


class BackendOperationFailure(Exception):
    """
    Base exception for all catalog backend errors.

    Used for recoverable and unrecoverable errors from DynamoDB operations.
    """

    pass


class NotFoundError(BackendOperationFailure):
    """
    Raised when a requested target or entry does not exist.

    Listing operations omit unmatched names instead of raising this.
    """

    pass


class InvalidObjectError(BackendOperationFailure):
    """
    Raised when a mutation refers to entries that cannot be altered,
    e.g. some of the entries to be altered are missing.
    """

    pass


class ThrottlingError(BackendOperationFailure):
    """
    Raised when DynamoDB returns throttling errors after retry exhaustion.

    Callers should implement backoff and retry logic at a higher level.
    """

    pass


class NetworkError(BackendOperationFailure):
    """
    Raised when network-level failures occur (connection timeout, DNS failure, etc.).

    This is unrecoverable at the repository level and indicates infrastructure issues.
    """

    pass


class AccessDeniedError(BackendOperationFailure):
    """
    Raised when IAM permissions are insufficient for the operation.
    """

    pass
