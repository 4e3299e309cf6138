"""
Ledger entry persistence, scoped to the owning account.
"""

from decimal import Decimal
from typing import List, Optional, Tuple
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from app.core.constants import TransactionType
from app.modules.accounts.models import Account
from app.modules.ledger.models import Transaction


def create(db: Session, entry: Transaction) -> Transaction:
    db.add(entry)
    db.flush()
    return entry


def get_by_id(db: Session, entry_id: str, for_update: bool = False) -> Optional[Transaction]:
    """With for_update the row stays locked until the transaction ends."""
    query = db.query(Transaction).filter(Transaction.id == entry_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def list_by_account(db: Session, account_id: str) -> List[Transaction]:
    return db.query(Transaction).filter(
        Transaction.account_id == account_id
    ).order_by(
        Transaction.occurred_at.desc(),
        Transaction.created_at.desc(),
    ).all()


def count_by_account(db: Session, account_id: str) -> int:
    return db.query(func.count(Transaction.id)).filter(
        Transaction.account_id == account_id
    ).scalar()


def balance_and_ledger_total(
    db: Session,
    account_id: str,
    transfer_sign: Decimal,
) -> Optional[Tuple[Decimal, Decimal]]:
    """
    Stored balance and signed entry total of an account, read in one
    statement so both come from the same snapshot. transfer_sign is the
    factor a TRANSFER amount contributes (-1 or 0).
    Returns None when the account does not exist.
    """
    signed_amount = case(
        (Transaction.type == TransactionType.INCOME.value, Transaction.amount),
        (Transaction.type == TransactionType.EXPENSE.value, -Transaction.amount),
        else_=Transaction.amount * transfer_sign,
    )
    ledger_total = db.query(
        func.coalesce(func.sum(signed_amount), 0)
    ).filter(
        Transaction.account_id == Account.id
    ).correlate(Account).scalar_subquery()

    row = db.query(Account.balance, ledger_total).filter(Account.id == account_id).first()
    if row is None:
        return None
    return row[0], row[1]


def update(db: Session, entry: Transaction) -> Transaction:
    db.add(entry)
    db.flush()
    return entry


def delete(db: Session, entry: Transaction) -> None:
    db.delete(entry)
    db.flush()
