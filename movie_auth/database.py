import logging

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from movie_auth.config import DatabaseConfig

logger = logging.getLogger(__name__)

# Base class for all models
Base = declarative_base()


def create_db_engine(db_config: DatabaseConfig) -> Engine:
    """
    Build the engine for the resolved database configuration.

    Server databases get a bounded pool with an acquisition timeout so a
    stalled request fails with a storage error instead of hanging.
    """
    return create_engine(
        db_config.url,
        connect_args=db_config.connect_args,
        **db_config.engine_kwargs,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """
    Initialize database schema.
    Creates all tables defined in models. Called from the application lifespan.
    """
    # Import registers the models on Base.metadata
    from movie_auth import models  # noqa: F401

    Base.metadata.create_all(bind=engine, tables=[models.User.__table__])
    logger.info("Users table ready")


def get_db(request: Request):
    """
    Dependency that provides database session to route handlers.
    Ensures session is properly closed after request.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
