import pytest
from fastapi.testclient import TestClient

from movie_auth.config import Settings, resolve_database_config
from movie_auth.database import create_db_engine, create_session_factory, init_db
from movie_auth.main import create_app
from movie_auth.service import AuthService
from movie_auth.session_store import MemorySessionStore
from movie_auth.users import UserRepository


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.t = float(start)

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += float(seconds)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        session_secret_key="test-secret",
        database_url=f"sqlite:///{tmp_path / 'auth.db'}",
        session_store_backend="database",
    )


@pytest.fixture()
def engine(settings):
    engine = create_db_engine(resolve_database_config(settings))
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def session_store(clock):
    return MemorySessionStore(now=clock)


@pytest.fixture()
def service(settings, session_store, clock) -> AuthService:
    return AuthService(settings=settings, users=UserRepository(), sessions=session_store, now=clock)


@pytest.fixture()
def app(settings):
    return create_app(settings)


@pytest.fixture()
def client(app):
    # Entering the client runs the lifespan, which opens the stores
    with TestClient(app) as c:
        yield c
