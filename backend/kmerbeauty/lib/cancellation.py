"""
Cancellation handles for request-scoped aggregation.

An aggregator checks its token after every backend call; once the token
is cancelled (explicitly or because its deadline passed) any result that
arrives afterwards is discarded instead of being returned.
"""
import threading
import time
from typing import Optional


class OperationCancelled(Exception):
    """Raised when work continues past its token's cancellation."""
    
    def __init__(self, operation: str = "operation"):
        self.operation = operation
        super().__init__(f"{operation} cancelled")


class CancellationToken:
    """
    Thread-safe cancellation flag with an optional deadline.
    
    Usage:
        token = CancellationToken(timeout=10)
        rows = repo.fetch()
        token.raise_if_cancelled("fetch")
    """
    
    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
    
    @classmethod
    def none(cls) -> "CancellationToken":
        """Token that is only cancelled by an explicit cancel()."""
        return cls()
    
    def cancel(self) -> None:
        self._event.set()
    
    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False
    
    def raise_if_cancelled(self, operation: str = "operation") -> None:
        if self.cancelled:
            raise OperationCancelled(operation)
