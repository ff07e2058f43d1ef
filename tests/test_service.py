import pytest

from movie_auth.errors import AuthenticationError, ConflictError, StorageUnavailable, ValidationError
from movie_auth.models import User
from movie_auth.service import INVALID_CREDENTIALS_MESSAGE, AuthService
from movie_auth.session_store import MemorySessionStore
from movie_auth.users import UserRepository


class BrokenSessionStore(MemorySessionStore):
    def set(self, session_id, data, expires_at):
        raise StorageUnavailable("session table is gone")

    def get(self, session_id):
        raise StorageUnavailable("session table is gone")

    def destroy(self, session_id):
        raise StorageUnavailable("session table is gone")


def register_alice(service, db, **overrides):
    values = {
        "user_id": "alice",
        "name": "Alice A",
        "email": "a@x.com",
        "phone": None,
        "password": "secret1",
    }
    values.update(overrides)
    return service.register(db, **values)


def user_count(db, user_id=None) -> int:
    q = db.query(User)
    if user_id is not None:
        q = q.filter(User.user_id == user_id)
    return q.count()


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"user_id": ""}, "userId, name, email, and password are required"),
        ({"name": None}, "userId, name, email, and password are required"),
        ({"email": ""}, "userId, name, email, and password are required"),
        ({"password": None}, "userId, name, email, and password are required"),
        ({"user_id": "alice smith"}, "userId must contain only letters, numbers, and underscores"),
        ({"user_id": "alice-a"}, "userId must contain only letters, numbers, and underscores"),
        ({"user_id": "élise"}, "userId must contain only letters, numbers, and underscores"),
        ({"user_id": "alice\n"}, "userId must contain only letters, numbers, and underscores"),
        ({"email": "alice"}, "Please enter a valid email address"),
        ({"email": "a@x"}, "Please enter a valid email address"),
        ({"email": "a b@x.com"}, "Please enter a valid email address"),
        ({"password": "12345"}, "Password must be at least 6 characters"),
    ],
)
def test_register_validation(service, db, overrides, message):
    with pytest.raises(ValidationError) as exc_info:
        register_alice(service, db, **overrides)
    assert exc_info.value.message == message
    assert exc_info.value.status_code == 400
    assert user_count(db) == 0


def test_first_failing_rule_wins(service, db):
    with pytest.raises(ValidationError) as exc_info:
        register_alice(service, db, user_id="bad id", email="nope", password="1")
    assert "userId must contain" in exc_info.value.message


def test_register_creates_user_and_session(service, db, session_store):
    result = register_alice(service, db, phone="555-0100")
    assert result.logged_in
    stored = db.query(User).filter(User.user_id == "alice").one()
    assert stored.password_hash != "secret1"
    assert stored.phone == "555-0100"
    assert session_store.get(result.session_id).user_id == "alice"
    assert session_store.get(result.session_id).user_name == "Alice A"


def test_empty_phone_is_stored_as_null(service, db):
    register_alice(service, db, phone="")
    assert db.query(User).filter(User.user_id == "alice").one().phone is None


def test_duplicate_register_conflicts(service, db):
    register_alice(service, db)
    with pytest.raises(ConflictError) as exc_info:
        register_alice(service, db, name="Other Alice")
    assert exc_info.value.status_code == 409
    assert "already taken" in exc_info.value.message
    assert user_count(db, "alice") == 1


def test_unique_constraint_closes_the_race(service, db, monkeypatch):
    register_alice(service, db)
    # Simulate a concurrent request that passed the existence check first
    monkeypatch.setattr(UserRepository, "find_by_user_id", lambda self, db, user_id: None)
    with pytest.raises(ConflictError):
        register_alice(service, db)
    monkeypatch.undo()
    assert user_count(db, "alice") == 1


def test_register_survives_session_failure(settings, db, clock):
    service = AuthService(settings=settings, users=UserRepository(), sessions=BrokenSessionStore(now=clock), now=clock)
    result = register_alice(service, db)
    assert not result.logged_in
    assert result.session_id is None
    assert user_count(db, "alice") == 1


def test_login_success(service, db, session_store):
    register_alice(service, db)
    sid = service.login(db, user_id="alice", password="secret1")
    assert session_store.get(sid).user_id == "alice"


def test_wrong_password_and_unknown_user_look_the_same(service, db):
    register_alice(service, db)
    with pytest.raises(AuthenticationError) as wrong:
        service.login(db, user_id="alice", password="wrong")
    with pytest.raises(AuthenticationError) as unknown:
        service.login(db, user_id="bob", password="whatever")
    assert wrong.value.message == unknown.value.message == INVALID_CREDENTIALS_MESSAGE
    assert wrong.value.status_code == unknown.value.status_code == 401


@pytest.mark.parametrize("user_id, password", [("", "secret1"), ("alice", ""), (None, None)])
def test_login_requires_both_fields(service, db, user_id, password):
    with pytest.raises(ValidationError) as exc_info:
        service.login(db, user_id=user_id, password=password)
    assert exc_info.value.message == "userId and password are required"


def test_login_replaces_previous_session(service, db, session_store):
    first = register_alice(service, db).session_id
    second = service.login(db, user_id="alice", password="secret1", previous_session_id=first)
    assert second != first
    assert session_store.get(first) is None
    assert session_store.get(second) is not None


def test_session_expires_after_lifetime(service, db, clock, settings):
    sid = register_alice(service, db).session_id
    clock.advance(settings.session_max_age - 1)
    assert service.whoami(sid).logged_in
    clock.advance(2)
    assert not service.whoami(sid).logged_in


def test_logout_then_whoami(service, db):
    sid = register_alice(service, db).session_id
    assert service.whoami(sid).user_id == "alice"
    service.logout(sid)
    assert not service.whoami(sid).logged_in
    service.logout(sid)
    service.logout(None)


def test_logout_reports_store_failure(settings, clock):
    service = AuthService(settings=settings, users=UserRepository(), sessions=BrokenSessionStore(now=clock), now=clock)
    with pytest.raises(StorageUnavailable):
        service.logout("some-session")


def test_whoami_never_fails(settings, clock):
    service = AuthService(settings=settings, users=UserRepository(), sessions=BrokenSessionStore(now=clock), now=clock)
    status = service.whoami("some-session")
    assert not status.logged_in
    assert status.user_id is None
