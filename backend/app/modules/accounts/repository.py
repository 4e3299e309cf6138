"""
Account persistence.

The general update path writes name, type and currency only. The balance
column has exactly one writer, apply_balance_delta, which asks the database
to add a delta to the stored value instead of writing a value computed in
Python.
"""

from decimal import Decimal
from typing import List, Optional
from sqlalchemy import update as sql_update
from sqlalchemy.orm import Session

from app.modules.accounts.models import Account
from app.shared.models.base import utcnow


def create(db: Session, account: Account) -> Account:
    account.balance = Decimal("0")
    db.add(account)
    db.flush()
    return account


def get_by_id(db: Session, account_id: str) -> Optional[Account]:
    return db.query(Account).filter(Account.id == account_id).first()


def list_by_user(db: Session, user_id: str) -> List[Account]:
    return db.query(Account).filter(
        Account.user_id == user_id
    ).order_by(Account.created_at.desc(), Account.id).all()


def update(db: Session, account: Account) -> Optional[Account]:
    """
    Persist metadata edits. Returns None when the row is gone.
    Any change made to account.balance in memory is discarded.
    """
    result = db.execute(
        sql_update(Account)
        .where(Account.id == account.id)
        .values(
            name=account.name,
            type=account.type,
            currency=account.currency,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    db.refresh(account)
    return account


def apply_balance_delta(db: Session, account_id: str, delta: Decimal) -> bool:
    """
    balance = balance + delta, evaluated by the database.
    On PostgreSQL the UPDATE holds the row lock until the surrounding
    transaction ends, so concurrent writers to one account queue here.
    Returns False when no such account exists.
    """
    result = db.execute(
        sql_update(Account)
        .where(Account.id == account_id)
        .values(balance=Account.balance + delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def refresh_balance(db: Session, account: Account) -> Account:
    """Reload the row so the returned account shows the stored balance."""
    db.refresh(account)
    return account


def delete(db: Session, account: Account) -> None:
    db.delete(account)
    db.flush()
