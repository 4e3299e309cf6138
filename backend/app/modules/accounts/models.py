"""
Account module database models.

An account's balance is derived state: it equals the signed sum of the
account's ledger entries and is only ever changed by a relative update
(see app.modules.accounts.repository.apply_balance_delta).
"""

from sqlalchemy import Column, String, Numeric, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from app.core.constants import MONEY_PRECISION, MONEY_SCALE
from app.shared.models.base import BaseModel


class Account(BaseModel):
    """A financial account belonging to a user."""

    __tablename__ = "accounts"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(200), nullable=False)
    type = Column(String(20), nullable=False)  # CHECKING, SAVINGS, CREDIT_CARD, CASH, INVESTMENT
    balance = Column(Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False, default=0)
    currency = Column(String(3), nullable=False)  # ISO 4217

    # Relationships
    user = relationship("User", back_populates="accounts")
    transactions = relationship(
        "Transaction",
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint('user_id', 'name', name='uq_accounts_user_name'),
        Index('idx_accounts_user', 'user_id'),
    )
