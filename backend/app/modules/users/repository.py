"""
User persistence.

Every function takes the session it runs on as the first argument.
"""

from typing import Optional
from sqlalchemy.orm import Session

from app.modules.users.models import User


def create(db: Session, user: User) -> User:
    db.add(user)
    db.flush()
    return user


def get_by_id(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def update(db: Session, user: User) -> User:
    db.add(user)
    db.flush()
    return user


def delete(db: Session, user: User) -> None:
    db.delete(user)
    db.flush()
