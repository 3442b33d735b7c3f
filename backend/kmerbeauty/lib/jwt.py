"""JWT access token validation.

Access tokens are issued by the managed auth service (HS256, signed with
the project's JWT secret, audience "authenticated"). This module never
issues tokens; it only verifies them and reads the user id from 'sub'.
"""
from typing import Optional

import jwt
from jwt.exceptions import InvalidTokenError

from kmerbeauty.lib.settings import settings


def verify_token(token: str) -> dict:
    """Verify and decode an access token.
    
    Args:
        token: JWT token string to verify
        
    Returns:
        Decoded token payload with claims
        
    Raises:
        InvalidTokenError: If token is invalid, expired, has the wrong
            audience or its signature doesn't match
        
    Example:
        >>> payload = verify_token(token)
        >>> user_id = payload["sub"]
    """
    return jwt.decode(
        token,
        settings.supabase_jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
    )


def get_user_id_from_token(token: str) -> str:
    """Extract the user id from a token.
    
    Raises:
        InvalidTokenError: If token is invalid or carries no subject
    """
    payload = verify_token(token)
    user_id: Optional[str] = payload.get("sub")
    if not user_id:
        raise InvalidTokenError("Token has no subject")
    return user_id
