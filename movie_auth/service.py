import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from movie_auth.auth import generate_session_id, hash_password, verify_password
from movie_auth.config import Settings
from movie_auth.errors import AuthenticationError, ConflictError, StorageUnavailable, ValidationError
from movie_auth.models import User
from movie_auth.schemas import SessionData, SessionStatus
from movie_auth.session_store import SessionStore
from movie_auth.users import DUPLICATE_USER_MESSAGE, UserRepository

logger = logging.getLogger(__name__)

USER_ID_PATTERN = re.compile(r"[A-Za-z0-9_]+")
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
MIN_PASSWORD_LENGTH = 6

INVALID_CREDENTIALS_MESSAGE = "Invalid userId or password"


@dataclass
class RegistrationResult:
    user_id: str
    # None when the account was created but the auto-login session was not
    session_id: Optional[str]

    @property
    def logged_in(self) -> bool:
        return self.session_id is not None


def validate_registration(
    user_id: Optional[str],
    name: Optional[str],
    email: Optional[str],
    password: Optional[str],
) -> None:
    """Apply the registration rules in order; the first failure wins."""
    if not user_id or not name or not email or not password:
        raise ValidationError("userId, name, email, and password are required")
    if not USER_ID_PATTERN.fullmatch(user_id):
        raise ValidationError("userId must contain only letters, numbers, and underscores")
    if not EMAIL_PATTERN.fullmatch(email):
        raise ValidationError("Please enter a valid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


class AuthService:
    """
    Registration, login, logout and session lookup.

    Holds no mutable state of its own; the credential and session stores are
    injected and shared across concurrent requests.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        users: UserRepository,
        sessions: SessionStore,
        now: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.users = users
        self.sessions = sessions
        self.now = now

    # --------- Core operations ----------
    def register(
        self,
        db: Session,
        *,
        user_id: Optional[str],
        name: Optional[str],
        email: Optional[str],
        password: Optional[str],
        phone: Optional[str] = None,
        previous_session_id: Optional[str] = None,
    ) -> RegistrationResult:
        """
        Create an account and log it in.

        Sequence: validate, check existing, hash, persist, create session.
        The row insert is the durable success boundary: if the session cannot
        be created afterwards the registration still succeeds, just without
        a login.
        """
        validate_registration(user_id, name, email, password)

        if self.users.find_by_user_id(db, user_id) is not None:
            raise ConflictError(DUPLICATE_USER_MESSAGE)

        user = User(
            user_id=user_id,
            name=name,
            email=email,
            phone=phone or None,
            password_hash=hash_password(password),
        )
        self.users.insert(db, user)
        logger.info("Registered user %r", user_id)

        try:
            session_id = self._start_session(user_id, name, previous_session_id)
        except StorageUnavailable:
            logger.warning("User %r registered but auto-login session could not be created", user_id)
            session_id = None
        return RegistrationResult(user_id=user_id, session_id=session_id)

    def login(
        self,
        db: Session,
        *,
        user_id: Optional[str],
        password: Optional[str],
        previous_session_id: Optional[str] = None,
    ) -> str:
        """
        Authenticate and return a fresh session id.

        Unknown user and wrong password fail identically.
        """
        if not user_id or not password:
            raise ValidationError("userId and password are required")

        user = self.users.find_by_user_id(db, user_id)
        stored_hash = user.password_hash if user is not None else None
        if not verify_password(password, stored_hash) or user is None:
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

        return self._start_session(user.user_id, user.name, previous_session_id)

    def logout(self, session_id: Optional[str]) -> None:
        """Destroy the session. Missing or unknown sessions are a no-op."""
        if not session_id:
            return
        self.sessions.destroy(session_id)

    def load_session(self, session_id: Optional[str]) -> Optional[SessionData]:
        if not session_id:
            return None
        try:
            return self.sessions.get(session_id)
        except StorageUnavailable:
            logger.warning("Session store unreadable; treating request as logged out")
            return None

    def whoami(self, session_id: Optional[str]) -> SessionStatus:
        data = self.load_session(session_id)
        if data is None or not data.user_id:
            return SessionStatus(logged_in=False)
        return SessionStatus(logged_in=True, user_id=data.user_id, user_name=data.user_name)

    def get_user(self, db: Session, user_id: str) -> Optional[User]:
        return self.users.find_by_user_id(db, user_id)

    # --------- Helpers ----------
    def _start_session(self, user_id: str, user_name: str, previous_session_id: Optional[str]) -> str:
        if previous_session_id:
            try:
                self.sessions.destroy(previous_session_id)
            except StorageUnavailable:
                logger.warning("Could not destroy previous session before login")

        session_id = generate_session_id()
        expires_at = self.now() + self.settings.session_max_age
        self.sessions.set(session_id, SessionData(user_id=user_id, user_name=user_name), expires_at)
        return session_id
