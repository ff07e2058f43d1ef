from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from movie_auth.auth import sign_session_id
from movie_auth.config import Settings
from movie_auth.database import get_db
from movie_auth.dependencies import get_auth_service, get_session_id, require_auth
from movie_auth.errors import NotAuthenticated, StorageUnavailable
from movie_auth.schemas import (
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    SessionData,
    SessionStatus,
    UserResponse,
)
from movie_auth.service import AuthService

# Handlers are plain functions: FastAPI runs them in its threadpool, which
# keeps password hashing and blocking database calls off the event loop.
router = APIRouter(tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
    session_id: Optional[str] = Depends(get_session_id),
):
    """
    Create new user account and log it in.

    Error cases:
    - 400: Validation failed
    - 409: userId already taken
    - 500: Database error
    """
    settings = request.app.state.settings
    result = auth.register(
        db,
        user_id=body.user_id,
        name=body.name,
        email=body.email,
        phone=body.phone,
        password=body.password,
        previous_session_id=session_id,
    )

    if not result.logged_in:
        return RegisterResponse(
            success=True,
            message="Account created! Please log in.",
            redirect=settings.login_path,
            logged_in=False,
        )

    _set_session_cookie(request, response, result.session_id)
    return RegisterResponse(
        success=True,
        message="Account created! Taking you to the movies...",
        redirect=settings.home_path,
        logged_in=True,
    )


@router.post("/login", response_model=MessageResponse, response_model_exclude_none=True)
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
    session_id: Optional[str] = Depends(get_session_id),
):
    """
    Authenticate user and create session.

    Security notes:
    - Generic error message prevents userId enumeration
    - Constant-time password verification prevents timing attacks
    """
    new_session_id = auth.login(
        db,
        user_id=body.user_id,
        password=body.password,
        previous_session_id=session_id,
    )
    _set_session_cookie(request, response, new_session_id)
    return MessageResponse(
        success=True,
        message="Login successful!",
        redirect=request.app.state.settings.home_path,
    )


@router.post("/logout", response_model=MessageResponse, response_model_exclude_none=True)
def logout(
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    session_id: Optional[str] = Depends(get_session_id),
):
    """
    Invalidate session and clear cookie.

    Returns success even if session doesn't exist (idempotent). If the store
    cannot delete the session the cookie is left alone and 500 is returned.
    """
    try:
        auth.logout(session_id)
    except StorageUnavailable as exc:
        raise StorageUnavailable(exc.detail, message="Logout failed") from exc

    _clear_session_cookie(request, response)
    return MessageResponse(success=True, redirect=request.app.state.settings.login_path)


@router.get("/session", response_model=SessionStatus, response_model_exclude_none=True)
def session_status(
    auth: AuthService = Depends(get_auth_service),
    session_id: Optional[str] = Depends(get_session_id),
):
    """
    Report whether the caller is logged in. Never fails.
    """
    return auth.whoami(session_id)


@router.get("/me", response_model=UserResponse)
def me(
    session: SessionData = Depends(require_auth),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Profile of the logged-in user. Returns 401 if not authenticated.
    """
    user = auth.get_user(db, session.user_id)
    if user is None:
        raise NotAuthenticated()
    return UserResponse(user_id=user.user_id, name=user.name, email=user.email, phone=user.phone)


def _cookie_kwargs(request: Request, settings: Settings) -> dict:
    return {
        "key": settings.cookie_name,
        "httponly": settings.cookie_httponly,
        "secure": settings.cookie_secure or request.url.scheme == "https",
        "samesite": settings.cookie_samesite,
        "path": "/",
        "domain": settings.cookie_domain if settings.cookie_domain != "localhost" else None,
    }


def _set_session_cookie(request: Request, response: Response, session_id: str):
    """
    Set session cookie with security flags.

    The cookie only contains the signed session ID (opaque token).
    All user data stays server-side.
    """
    settings = request.app.state.settings
    response.set_cookie(
        value=sign_session_id(session_id, settings.session_secret_key),
        max_age=settings.session_max_age,
        **_cookie_kwargs(request, settings),
    )


def _clear_session_cookie(request: Request, response: Response):
    response.set_cookie(
        value="",
        max_age=0,
        **_cookie_kwargs(request, request.app.state.settings),
    )
