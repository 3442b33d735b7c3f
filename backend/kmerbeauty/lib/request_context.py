"""
Request context utilities for accessing correlation_id and other request-scoped data.
"""
from typing import Optional

from fastapi import Request

from kmerbeauty.lib.cancellation import CancellationToken
from kmerbeauty.lib.settings import settings


def get_correlation_id(request: Request) -> Optional[str]:
    """
    Get the correlation ID from the current request.
    
    Args:
        request: FastAPI Request object
        
    Returns:
        Correlation ID string or None if not available
    """
    return getattr(request.state, "correlation_id", None)


def get_cancellation_token() -> CancellationToken:
    """
    FastAPI dependency giving each request its own deadline-bound token.
    """
    return CancellationToken(timeout=settings.request_timeout_seconds)
