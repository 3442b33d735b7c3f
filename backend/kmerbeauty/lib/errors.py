"""
Data-access error taxonomy.

Every repository call either returns data or raises one of the
DataAccessError subclasses below, so routes and aggregators only ever
branch on a small fixed set of kinds instead of driver exceptions.
"""
import copy
import enum
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from sqlalchemy.exc import (
    DataError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    NoResultFound,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)

from kmerbeauty.lib.logging import get_logger
from kmerbeauty.lib.metrics import get_metrics_collector


logger = get_logger(__name__)


class ErrorKind(str, enum.Enum):
    """Kinds of failure a caller may pattern-match on."""
    NOT_FOUND = "not_found"
    NETWORK = "network_error"
    VALIDATION = "validation_error"
    UNKNOWN = "unknown"


class DataAccessError(Exception):
    """Base class for failures of the data-access layer."""
    
    kind: ErrorKind = ErrorKind.UNKNOWN
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)
    
    def with_message(self, message: str) -> "DataAccessError":
        """Same kind and details, with a message meant for the end user."""
        error = copy.copy(self)
        error.message = message
        error.args = (message,)
        return error


class NotFoundError(DataAccessError):
    """Requested row does not exist."""
    kind = ErrorKind.NOT_FOUND
    
    def __init__(self, resource: str, resource_id: Optional[str] = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        super().__init__(message, {"resource": resource, "resource_id": resource_id})


class NetworkError(DataAccessError):
    """Backend unreachable, timed out or dropped the connection."""
    kind = ErrorKind.NETWORK


class DataValidationError(DataAccessError):
    """Input rejected before or by the backend."""
    kind = ErrorKind.VALIDATION


class UnknownDataError(DataAccessError):
    """Anything the backend raised that fits no other kind."""
    kind = ErrorKind.UNKNOWN


def classify_db_error(exc: SQLAlchemyError) -> DataAccessError:
    """
    Map a SQLAlchemy exception onto the taxonomy.
    
    Args:
        exc: Exception raised by the engine or session
        
    Returns:
        The matching DataAccessError (not raised)
    """
    if isinstance(exc, NoResultFound):
        return NotFoundError("Row")
    if isinstance(exc, (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)):
        return NetworkError("Database unavailable")
    if isinstance(exc, (IntegrityError, DataError)):
        # Driver text names tables and constraints; it stays in the logs
        logger.warning("Database rejected statement", extra={"reason": str(getattr(exc, "orig", exc))})
        return DataValidationError("Rejected by database")
    return UnknownDataError("Unexpected database error")


@contextmanager
def translate_db_errors(operation: str) -> Iterator[None]:
    """
    Re-raise SQLAlchemy errors raised inside the block as DataAccessError.
    
    Args:
        operation: Short name of the backend call, used in logs and metrics
    """
    try:
        yield
    except SQLAlchemyError as exc:
        error = classify_db_error(exc)
        logger.error(
            f"Backend call failed: {operation}",
            extra={"operation": operation, "kind": error.kind.value},
            exc_info=True,
        )
        get_metrics_collector().increment_backend_errors(operation, error.kind.value)
        raise error from exc
