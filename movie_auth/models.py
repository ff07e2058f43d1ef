from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from movie_auth.database import Base


class User(Base):
    """
    Registered account. Stores credentials and profile fields.

    Design notes:
    - user_id is chosen by the registrant and is the login identifier
    - the UNIQUE constraint on user_id is what actually prevents duplicates;
      the service's existence check only gives a friendlier error earlier
    - password_hash never leaves the database layer
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(150), nullable=False)
    phone = Column(String(20), nullable=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, user_id={self.user_id})>"


class SessionRecord(Base):
    """
    Server-side session row used by the database session store.

    - session_id is the token referenced by the cookie
    - expires is epoch seconds, indexed for the periodic sweep
    - data is the JSON-serialized session payload
    """
    __tablename__ = "sessions"

    session_id = Column(String(128), primary_key=True)
    expires = Column(Integer, nullable=False, index=True)
    data = Column(Text, nullable=True)

    def __repr__(self):
        return f"<SessionRecord(session_id={self.session_id[:8]}..., expires={self.expires})>"
