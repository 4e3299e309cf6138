"""
User module database models.
"""

from sqlalchemy import Column, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.shared.models.base import BaseModel


class User(BaseModel):
    """A person who owns accounts."""

    __tablename__ = "users"

    name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=False)

    # Relationships
    accounts = relationship(
        "Account",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint('email', name='uq_users_email'),
    )
