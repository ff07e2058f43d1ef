import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from movie_auth.config import Settings, get_settings, resolve_database_config
from movie_auth.database import create_db_engine, create_session_factory, init_db
from movie_auth.errors import AuthAppError, NotAuthenticated, StorageUnavailable
from movie_auth.routers import auth_router, pages
from movie_auth.service import AuthService
from movie_auth.session_store import open_session_store, run_session_sweeper
from movie_auth.users import UserRepository

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup opens the database, the session store and the expired-session
    sweeper; shutdown closes them in reverse order.
    """
    settings = app.state.settings
    db_config = resolve_database_config(settings)
    engine = create_db_engine(db_config)
    try:
        init_db(engine)
    except Exception:
        logger.exception("Database initialization failed (%s)", db_config.url.render_as_string(hide_password=True))
        engine.dispose()
        raise

    try:
        store = open_session_store(settings, engine)
        app.state.engine = engine
        app.state.session_factory = create_session_factory(engine)
        app.state.session_store = store
        app.state.auth_service = AuthService(settings=settings, users=UserRepository(), sessions=store)
    except Exception:
        logger.exception("Auth service startup failed")
        engine.dispose()
        raise

    sweeper = asyncio.create_task(
        run_session_sweeper(store, settings.session_cleanup_interval_minutes * 60)
    )
    logger.info("Auth service ready (session store: %s)", store.backend)
    yield

    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    store.close()
    engine.dispose()


def _error_body(message: str) -> dict:
    return {"success": False, "message": message}


def _is_api_request(request: Request) -> bool:
    prefix = request.app.state.settings.api_prefix.rstrip("/") + "/"
    return request.url.path.startswith(prefix)


async def handle_auth_error(request: Request, exc: AuthAppError):
    if isinstance(exc, NotAuthenticated) and not _is_api_request(request):
        # Page requests are sent to the login page instead of getting a 401
        return RedirectResponse(request.app.state.settings.login_path, status_code=status.HTTP_302_FOUND)
    if isinstance(exc, StorageUnavailable):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail or exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))


async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_body("Invalid request body"))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title="Movie App Auth",
        description="Registration, login and session-protected pages for the movie app",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_exception_handler(AuthAppError, handle_auth_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)

    app.include_router(auth_router.router, prefix=settings.api_prefix)
    app.include_router(pages.router)

    @app.get("/health")
    def health(request: Request):
        """
        Health check endpoint.
        """
        store = getattr(request.app.state, "session_store", None)
        return {
            "status": "running",
            "version": VERSION,
            "sessionStore": store.backend if store is not None else None,
        }

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "movie_auth.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=get_settings().debug,
    )
