import secrets
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from itsdangerous import BadSignature, Signer

# Argon2 hasher with secure defaults
# Argon2id is recommended variant (combines Argon2i and Argon2d)
ph = PasswordHasher()

# Verified against when the user does not exist, so both login failures
# cost roughly the same time
_DUMMY_HASH = ph.hash(secrets.token_urlsafe(16))


def hash_password(password: str) -> str:
    """
    Hash password using Argon2id.

    Returns hash string that includes algorithm parameters and salt.
    Format: $argon2id$v=19$m=65536,t=3,p=4$salt$hash
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """
    Verify password against stored hash.

    Uses constant-time comparison internally to prevent timing attacks.
    A missing hash is checked against a throwaway hash and always fails.
    Returns False for any error to avoid information leakage.
    """
    if password_hash is None:
        try:
            ph.verify(_DUMMY_HASH, password)
        except VerificationError:
            pass
        return False
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def generate_session_id() -> str:
    """
    Generate cryptographically secure session identifier.

    Uses 32 bytes (256 bits) of randomness.
    Hex encoded = 64 character string.
    """
    return secrets.token_hex(32)


SESSION_COOKIE_SALT = "movie_auth.session.v1"


def _signer(secret: str) -> Signer:
    return Signer(secret_key=secret, salt=SESSION_COOKIE_SALT)


def sign_session_id(session_id: str, secret: str) -> str:
    """Cookie value for a session id: ``<id>.<signature>``."""
    return _signer(secret).sign(session_id).decode("ascii")


def unsign_session_id(cookie_value: Optional[str], secret: str) -> Optional[str]:
    """
    Return the session id carried by a signed cookie value.

    None for a missing, malformed or tampered value.
    """
    if not cookie_value:
        return None
    try:
        session_id = _signer(secret).unsign(cookie_value).decode("utf-8")
    except (BadSignature, UnicodeDecodeError):
        return None
    return session_id or None
