from typing import Optional

from fastapi import Depends, Request

from movie_auth.auth import unsign_session_id
from movie_auth.errors import NotAuthenticated
from movie_auth.schemas import SessionData
from movie_auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_session_id(request: Request) -> Optional[str]:
    """
    Session id from the signed cookie, or None when absent or tampered with.
    """
    settings = request.app.state.settings
    return unsign_session_id(request.cookies.get(settings.cookie_name), settings.session_secret_key)


def get_current_session(
    session_id: Optional[str] = Depends(get_session_id),
    auth: AuthService = Depends(get_auth_service),
) -> Optional[SessionData]:
    """
    Returns the session payload if one is active, otherwise None.
    Does NOT raise 401.
    """
    return auth.load_session(session_id)


def require_auth(session: Optional[SessionData] = Depends(get_current_session)) -> SessionData:
    """
    Gate for protected resources: the session must carry a user id.

    How a denial looks (401 JSON or redirect to login) is decided by the
    NotAuthenticated handler from the request path, so every protected
    route runs the same check.
    """
    if session is None or not session.user_id:
        raise NotAuthenticated()
    return session
