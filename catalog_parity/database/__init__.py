"""Database module - DynamoDB catalog repository and transaction scoping."""

from .dynamodb_client import CatalogRepository
from .exceptions import (
    AccessDeniedError,
    BackendOperationFailure,
    InvalidObjectError,
    NetworkError,
    NotFoundError,
    ThrottlingError,
)
from .transaction import TransactionCoordinator, TransactionScope

__all__ = [
    "CatalogRepository",
    "TransactionCoordinator",
    "TransactionScope",
    "BackendOperationFailure",
    "NotFoundError",
    "InvalidObjectError",
    "ThrottlingError",
    "NetworkError",
    "AccessDeniedError",
]
