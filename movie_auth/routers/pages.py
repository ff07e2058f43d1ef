from html import escape
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse

from movie_auth.dependencies import get_current_session, require_auth
from movie_auth.schemas import SessionData

router = APIRouter(tags=["pages"])


@router.get("/", include_in_schema=False)
def root(request: Request, session: Optional[SessionData] = Depends(get_current_session)):
    """
    Send logged-in users home and everyone else to the login page.
    """
    settings = request.app.state.settings
    target = settings.home_path if session is not None and session.user_id else settings.login_path
    return RedirectResponse(target, status_code=status.HTTP_302_FOUND)


@router.get("/home.html", response_class=HTMLResponse, include_in_schema=False)
def home(session: SessionData = Depends(require_auth)):
    """
    Protected page. Anonymous visitors are redirected to the login page.
    """
    name = escape(session.user_name or session.user_id)
    return f"<!doctype html><title>Movies</title><p>Welcome, {name}</p>"
