"""Supabase JWT validation dependency and password sign-in helpers."""

import logging
from typing import Any, Dict

import httpx
from fastapi import Header

from app.db.supabase_client import get_supabase, run_blocking, session_client
from app.errors import AuthenticationFailed, UpstreamAuthError, ValidationFailed

logger = logging.getLogger(__name__)


def _is_outage(exc: Exception) -> bool:
    """True when the identity service could not answer, as opposed to rejecting the token.

    supabase-auth reports network failures as a retryable error with status 0
    and passes gateway/server failures through with their HTTP status.
    """
    if isinstance(exc, httpx.TransportError):
        return True
    status = getattr(exc, "status", None)
    return isinstance(status, int) and (status == 0 or status >= 500)


async def verify_jwt(authorization: str = Header(None)) -> Any:
    """Validate the Supabase JWT from the Authorization header.

    Returns the authenticated user object.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationFailed("Missing or invalid token")

    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthenticationFailed("No token provided")
    try:
        user_response = await run_blocking(get_supabase().auth.get_user, token)
    except Exception as exc:
        if _is_outage(exc):
            logger.error("Identity service unavailable: %s", exc)
            raise UpstreamAuthError(f"Identity service unavailable: {exc}") from exc
        logger.warning("Token validation failed: %s", exc)
        raise AuthenticationFailed("Invalid user token") from exc
    if user_response is None or user_response.user is None:
        raise AuthenticationFailed("Invalid user token")
    return user_response.user


def _session_payload(response: Any) -> Dict[str, Any]:
    user = response.user
    session = response.session
    return {
        "user": {
            "id": user.id if user else None,
            "email": user.email if user else None,
        },
        "session": {
            "access_token": session.access_token if session else None,
            "refresh_token": session.refresh_token if session else None,
            "expires_in": session.expires_in if session else None,
        },
    }


def sign_in(email: str, password: str) -> Dict[str, Any]:
    try:
        response = session_client().auth.sign_in_with_password(
            {"email": email, "password": password}
        )
    except Exception as exc:
        logger.error("Login error: %s", exc)
        raise AuthenticationFailed(str(exc)) from exc
    return _session_payload(response)


def sign_up(email: str, password: str) -> Dict[str, Any]:
    try:
        response = session_client().auth.sign_up({"email": email, "password": password})
    except Exception as exc:
        logger.error("Registration error: %s", exc)
        raise ValidationFailed(str(exc)) from exc
    return _session_payload(response)
