"""
Authentication dependencies for FastAPI endpoints.

Analyses can be requested anonymously (local mode has a single placeholder
user). When a Supabase bearer token is sent it is verified via
auth.get_user() and the user id becomes the owner of stored records.
"""

from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


class AuthenticatedUser(BaseModel):
    """Represents a verified authenticated user."""

    id: str
    email: str | None = None


async def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthenticatedUser | None:
    """
    FastAPI dependency returning the caller, or None for anonymous requests.

    Raises:
        HTTPException 503: A token was sent but Supabase is not configured.
        HTTPException 401: The token is invalid, expired, or the user is unknown.
    """
    if credentials is None:
        return None

    supabase = getattr(request.app.state, "supabase", None)
    if supabase is None:
        raise HTTPException(status_code=503, detail="Servicio de autenticación no disponible")

    try:
        response = await supabase.auth.get_user(credentials.credentials)
        user = response.user if response else None
        if user is None:
            raise HTTPException(status_code=401, detail="Token inválido o expirado")
        return AuthenticatedUser(id=str(user.id), email=user.email)
    except HTTPException:
        raise
    except Exception as e:
        logger.warning("auth_token_verification_failed", error=str(e))
        raise HTTPException(status_code=401, detail="Token inválido o expirado")


OptionalUser = Annotated[AuthenticatedUser | None, Depends(get_optional_user)]
