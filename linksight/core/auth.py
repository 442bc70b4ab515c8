"""
Auth utilities for the Linksight API.

Validates bearer JWTs (HS256, shared secret with the auth service) and
resolves the calling user. Issuing tokens for real users (login, refresh)
lives in the auth service; create_access_token exists for operators and tests.
"""
from datetime import timedelta
from typing import Optional, Dict, Any
import logging

import jwt
from fastapi import Request

from linksight.core.config import settings
from linksight.core.errors import AuthError
from linksight.core.timeutils import utc_now
from linksight.features.users.service import get_user
from linksight.models.user import User

logger = logging.getLogger(__name__)


def _secret() -> str:
    if not settings.JWT_SECRET:
        raise AuthError("Authentication is not configured", code="auth_not_configured", status_code=503)
    return settings.JWT_SECRET


def create_access_token(user_id: str, expires_in: Optional[timedelta] = None, extra_claims: Optional[Dict[str, Any]] = None) -> str:
    """Sign a token whose 'sub' claim is the user id."""
    now = utc_now()
    expires = now + (expires_in if expires_in is not None else timedelta(minutes=settings.JWT_EXPIRES_MINUTES))
    payload: Dict[str, Any] = {"sub": user_id, "iat": now, "exp": expires}
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, _secret(), algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> str:
    """
    Verify a bearer JWT and extract the user id.

    Accepts the standard 'sub' claim or the legacy 'userId' claim.

    Raises:
        AuthError 401: Expired, invalid or subject-less token
    """
    try:
        payload = jwt.decode(
            token,
            _secret(),
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_signature": True, "verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired", code="token_expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise AuthError("Invalid token", code="invalid_token")

    user_id = payload.get("sub") or payload.get("userId")
    if not user_id:
        raise AuthError("Invalid token", code="invalid_token")
    return str(user_id)


async def get_current_user(request: Request) -> User:
    """
    Resolve the authenticated user from the Authorization header.

    Raises:
        AuthError 401: Missing/invalid token or unknown user
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise AuthError("Missing Authorization (Bearer JWT) header", code="missing_token")

    user_id = verify_token(auth_header[7:].strip())
    user = get_user(user_id)
    if user is None:
        raise AuthError("User not found", code="user_not_found")

    request.state.user_id = user.user_id
    return user
