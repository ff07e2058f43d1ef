import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from movie_auth.errors import ConflictError, StorageUnavailable
from movie_auth.models import User

logger = logging.getLogger(__name__)

DUPLICATE_USER_MESSAGE = "This userId is already taken. Please choose another."


class UserRepository:
    """
    Credential store access: lookup by identifier and insert. Nothing else.
    """

    def find_by_user_id(self, db: Session, user_id: str) -> Optional[User]:
        try:
            return db.query(User).filter(User.user_id == user_id).first()
        except SQLAlchemyError as exc:
            logger.exception("User lookup failed for %r", user_id)
            raise StorageUnavailable(str(exc)) from exc

    def insert(self, db: Session, user: User) -> User:
        """
        Persist a new user.

        A violated UNIQUE constraint means another request registered the
        same identifier between our existence check and this insert.
        """
        try:
            db.add(user)
            db.commit()
            db.refresh(user)
        except IntegrityError as exc:
            db.rollback()
            raise ConflictError(DUPLICATE_USER_MESSAGE) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("User insert failed for %r", user.user_id)
            raise StorageUnavailable(str(exc)) from exc
        return user
