import asyncio
import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from movie_auth.config import Settings
from movie_auth.database import Base
from movie_auth.errors import StorageUnavailable
from movie_auth.models import SessionRecord
from movie_auth.schemas import SessionData

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def _dump(data: SessionData) -> str:
    return data.model_dump_json(by_alias=True, exclude_none=True)


def _load(raw: Optional[str]) -> Optional[SessionData]:
    try:
        return SessionData.model_validate_json(raw or "{}")
    except ValidationError:
        logger.warning("Discarding unreadable session payload")
        return None


class SessionStore:
    """
    Key-value persistence of session id -> payload with expiry.

    Expired entries are reported as absent by get() even before the sweep
    removes them.
    """
    backend = "abstract"

    def get(self, session_id: str) -> Optional[SessionData]:
        raise NotImplementedError

    def set(self, session_id: str, data: SessionData, expires_at: float) -> None:
        raise NotImplementedError

    def destroy(self, session_id: str) -> None:
        """Remove a session. Unknown ids are a no-op."""
        raise NotImplementedError

    def clear_expired(self) -> int:
        """Delete every expired session and return how many were removed."""
        raise NotImplementedError

    def close(self) -> None:
        pass


class MemorySessionStore(SessionStore):
    """Thread-safe in-process store.

    Sessions are lost on restart and are not shared between server instances.
    """
    backend = "memory"

    def __init__(self, now: Clock = time.time):
        self._now = now
        self._data: Dict[str, Tuple[float, str]] = {}
        self._lock = threading.RLock()

    def get(self, session_id: str) -> Optional[SessionData]:
        with self._lock:
            entry = self._data.get(session_id)
            if entry is None:
                return None
            expires_at, raw = entry
            if expires_at <= self._now():
                del self._data[session_id]
                return None
        return _load(raw)

    def set(self, session_id: str, data: SessionData, expires_at: float) -> None:
        with self._lock:
            self._data[session_id] = (expires_at, _dump(data))

    def destroy(self, session_id: str) -> None:
        with self._lock:
            self._data.pop(session_id, None)

    def clear_expired(self) -> int:
        now = self._now()
        with self._lock:
            expired = [sid for sid, (expires_at, _) in self._data.items() if expires_at <= now]
            for sid in expired:
                del self._data[sid]
        return len(expired)

    def close(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class DatabaseSessionStore(SessionStore):
    """Sessions kept in the ``sessions`` table of the relational store."""
    backend = "database"

    def __init__(self, engine: Engine, now: Clock = time.time):
        self._engine = engine
        self._now = now
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def create_table(self) -> None:
        Base.metadata.create_all(bind=self._engine, tables=[SessionRecord.__table__])

    @contextmanager
    def _db(self):
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Session store operation failed")
            raise StorageUnavailable(str(exc)) from exc
        finally:
            db.close()

    def get(self, session_id: str) -> Optional[SessionData]:
        with self._db() as db:
            record = db.get(SessionRecord, session_id)
            if record is None or record.expires <= self._now():
                return None
            raw = record.data
        return _load(raw)

    def set(self, session_id: str, data: SessionData, expires_at: float) -> None:
        with self._db() as db:
            db.merge(SessionRecord(session_id=session_id, expires=int(expires_at), data=_dump(data)))
            db.commit()

    def destroy(self, session_id: str) -> None:
        with self._db() as db:
            db.query(SessionRecord).filter(SessionRecord.session_id == session_id).delete()
            db.commit()

    def clear_expired(self) -> int:
        with self._db() as db:
            removed = db.query(SessionRecord).filter(SessionRecord.expires <= self._now()).delete()
            db.commit()
        return removed


def open_session_store(settings: Settings, engine: Engine, now: Clock = time.time) -> SessionStore:
    """
    Pick the session store at startup.

    If the database store cannot be prepared the app keeps running on the
    in-memory store: sessions then survive neither a restart nor a second
    server instance.
    """
    if settings.session_store_backend == "memory":
        logger.info("Using in-memory session store")
        return MemorySessionStore(now=now)

    store = DatabaseSessionStore(engine, now=now)
    try:
        store.create_table()
    except SQLAlchemyError as exc:
        logger.warning("Could not configure database session store, using memory store: %s", exc)
        return MemorySessionStore(now=now)
    logger.info("Database session store initialized")
    return store


async def run_session_sweeper(store: SessionStore, interval_seconds: float) -> None:
    """
    Periodically remove expired sessions until cancelled.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = await run_in_threadpool(store.clear_expired)
        except StorageUnavailable:
            logger.warning("Expired session sweep failed; retrying next interval")
            continue
        if removed:
            logger.info("Removed %d expired sessions", removed)
