"""Accessors for the services created in the application lifespan."""

import uuid
from typing import Any

from fastapi import HTTPException, Request, Response

from inmoai.auth import OptionalUser
from inmoai.services.session import AnalysisSession, SessionRegistry

# Identifies the session of a caller without a bearer token
SESSION_COOKIE = "inmoai_session"


def _get_state(request: Request, name: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"Servicio no disponible: {name}")
    return service


def set_session_cookie(response: Response, session: AnalysisSession) -> None:
    """Attach the anonymous session cookie; no-op for authenticated sessions."""
    if session.token is not None:
        response.set_cookie(SESSION_COOKIE, session.token, httponly=True, samesite="lax")


def get_session(request: Request, response: Response, user: OptionalUser) -> AnalysisSession:
    """
    Return the caller's own AnalysisSession.

    Authenticated callers are keyed by user id. Anonymous callers are keyed by
    the session cookie, which is issued on their first request.
    """
    registry: SessionRegistry = _get_state(request, "sessions")
    if user is not None:
        return registry.for_user(user.id)

    token = request.cookies.get(SESSION_COOKIE)
    session = registry.for_anonymous(token or uuid.uuid4().hex)
    if token is None:
        set_session_cookie(response, session)
    return session


def get_geocoding_service(request: Request):
    return _get_state(request, "geocoding_service")


def get_telegram_service(request: Request):
    return _get_state(request, "telegram_service")


def get_chat_assistant(request: Request):
    return _get_state(request, "chat_assistant")
