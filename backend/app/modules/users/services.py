"""
User management service.
"""

import logging
from typing import Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import duplicate_email, not_found, storage_failure
from app.core.validation import require_email, require_text
from app.modules.users import repository as users_repository
from app.modules.users.models import User

logger = logging.getLogger(__name__)


def _commit(db: Session, email: str) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        # Lost a race with another request registering the same email
        db.rollback()
        raise duplicate_email(email) from e
    except SQLAlchemyError as e:
        db.rollback()
        raise storage_failure(str(e), exc=e) from e


def create_user(db: Session, name: str, email: str) -> User:
    """Register a user. Emails are unique."""
    email = require_email(email)
    name = require_text(name, "name")

    if users_repository.get_by_email(db, email) is not None:
        raise duplicate_email(email)

    user = users_repository.create(db, User(name=name, email=email))
    _commit(db, email)

    logger.info(f"Created user {user.id}")
    return user


def get_user(db: Session, user_id: str) -> User:
    user = users_repository.get_by_id(db, user_id)
    if user is None:
        raise not_found("user", user_id)
    return user


def get_user_by_email(db: Session, email: str) -> User:
    email = require_email(email)
    user = users_repository.get_by_email(db, email)
    if user is None:
        raise not_found("user", email)
    return user


def update_user(
    db: Session,
    user_id: str,
    name: Optional[str] = None,
    email: Optional[str] = None,
) -> User:
    """Change name and/or email. Fields left as None keep their value."""
    user = get_user(db, user_id)

    if name is not None:
        user.name = require_text(name, "name")
    if email is not None:
        email = require_email(email)
        if email != user.email:
            existing = users_repository.get_by_email(db, email)
            if existing is not None and existing.id != user.id:
                raise duplicate_email(email)
            user.email = email

    users_repository.update(db, user)
    _commit(db, user.email)

    logger.info(f"Updated user {user.id}")
    return user


def delete_user(db: Session, user_id: str) -> None:
    """Delete a user together with their accounts and ledger entries."""
    user = get_user(db, user_id)
    users_repository.delete(db, user)
    _commit(db, user.email)
    logger.info(f"Deleted user {user_id}")
