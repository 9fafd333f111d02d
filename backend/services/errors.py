"""
Error kinds raised by the identity and credential services.

Each error carries the HTTP status the API layer answers with. Messages are
safe to show to clients and never include store internals.
"""

from contextlib import contextmanager
from typing import Iterator

from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError


class TrustCoreError(Exception):
    """Base class for service errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TrustCoreError):
    """Identity or credential does not exist."""

    status_code = 404


class PermissionDeniedError(TrustCoreError):
    """Caller is not allowed to perform the operation."""

    status_code = 403


class InvalidOperationError(TrustCoreError):
    """Request can never succeed, e.g. removing the base role."""

    status_code = 400


class ConflictError(TrustCoreError):
    """Lost a race on the store. Safe to retry."""

    status_code = 409


class InternalError(TrustCoreError):
    """Unexpected store failure."""

    status_code = 500


@contextmanager
def translate_store_errors(action: str) -> Iterator[None]:
    """
    Re-raise pymongo failures as service errors.

    Args:
        action: What was being done, used in the client-facing message
    """
    try:
        yield
    except DuplicateKeyError as e:
        raise ConflictError(f"Concurrent update while {action}") from e
    except OperationFailure as e:
        if e.has_error_label("TransientTransactionError"):
            raise ConflictError(f"Concurrent update while {action}") from e
        raise InternalError(f"Failed {action}") from e
    except PyMongoError as e:
        raise InternalError(f"Failed {action}") from e
