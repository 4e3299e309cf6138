"""
Ledger database models.
"""

from sqlalchemy import Column, String, Numeric, DateTime, Text, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import relationship

from app.core.constants import MONEY_PRECISION, MONEY_SCALE
from app.shared.models.base import BaseModel, utcnow


class Transaction(BaseModel):
    """A single income, expense or transfer booked on one account."""

    __tablename__ = "transactions"

    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)

    # Transaction details
    amount = Column(Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False)  # Always positive, direction is in type
    currency = Column(String(3), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(100), nullable=False, default="")
    occurred_at = Column(DateTime, nullable=False, default=utcnow)
    type = Column(String(20), nullable=False)  # INCOME, EXPENSE, TRANSFER

    # Relationships
    account = relationship("Account", back_populates="transactions")

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_transactions_amount_positive'),
        Index('idx_transactions_account', 'account_id'),
        Index('idx_transactions_occurred_at', 'occurred_at'),
    )
