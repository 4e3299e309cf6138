"""
Account management service.

Only account metadata is edited here. Balances move exclusively through the
ledger (app.modules.ledger.balance).
"""

import logging
from typing import List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import AccountType
from app.core.errors import duplicate_account, invalid_input, not_found, storage_failure
from app.core.validation import require_currency, require_member, require_text, require_uuid
from app.modules.accounts import repository as accounts_repository
from app.modules.accounts.models import Account
from app.modules.ledger import repository as ledger_repository
from app.modules.users import repository as users_repository

logger = logging.getLogger(__name__)


def _name_taken(db: Session, user_id: str, name: str, exclude_id: Optional[str] = None) -> bool:
    return any(
        acc.name == name and acc.id != exclude_id
        for acc in accounts_repository.list_by_user(db, user_id)
    )


def _commit(db: Session, user_id: str, name: str) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise duplicate_account(user_id, name) from e
    except SQLAlchemyError as e:
        db.rollback()
        raise storage_failure(str(e), exc=e) from e


def create_account(
    db: Session,
    user_id: str,
    name: str,
    account_type: AccountType,
    currency: Optional[str] = None,
) -> Account:
    """Open an account for an existing user. New accounts start at balance 0."""
    user_id = require_uuid(user_id, "user_id")
    name = require_text(name, "name")
    account_type = require_member(account_type, AccountType, "type")
    currency = require_currency(currency or settings.DEFAULT_CURRENCY)

    if users_repository.get_by_id(db, user_id) is None:
        raise not_found("user", user_id)
    if _name_taken(db, user_id, name):
        raise duplicate_account(user_id, name)

    account = accounts_repository.create(db, Account(
        user_id=user_id,
        name=name,
        type=account_type.value,
        currency=currency,
    ))
    _commit(db, user_id, name)

    logger.info(f"Created {account_type.value} account {account.id} for user {user_id}")
    return account


def get_account(db: Session, account_id: str) -> Account:
    account = accounts_repository.get_by_id(db, account_id)
    if account is None:
        raise not_found("account", account_id)
    return account


def list_user_accounts(db: Session, user_id: str) -> List[Account]:
    if users_repository.get_by_id(db, user_id) is None:
        raise not_found("user", user_id)
    return accounts_repository.list_by_user(db, user_id)


def update_account(
    db: Session,
    account_id: str,
    name: Optional[str] = None,
    account_type: Optional[AccountType] = None,
    currency: Optional[str] = None,
) -> Account:
    """
    Edit name, type or currency. The balance is never touched, and the
    currency is fixed once the account has transactions.
    """
    account = get_account(db, account_id)

    if name is not None:
        name = require_text(name, "name")
        if name != account.name and _name_taken(db, account.user_id, name, exclude_id=account.id):
            raise duplicate_account(account.user_id, name)
        account.name = name
    if account_type is not None:
        account.type = require_member(account_type, AccountType, "type").value
    if currency is not None:
        currency = require_currency(currency)
        # Entries must stay in their account's currency
        if currency != account.currency and ledger_repository.count_by_account(db, account.id) > 0:
            raise invalid_input("currency", "cannot change the currency of an account with transactions")
        account.currency = currency

    try:
        updated = accounts_repository.update(db, account)
    except IntegrityError as e:
        db.rollback()
        raise duplicate_account(account.user_id, account.name) from e
    if updated is None:
        db.rollback()
        raise not_found("account", account_id)
    _commit(db, account.user_id, account.name)

    logger.info(f"Updated account {account_id}")
    return updated


def delete_account(db: Session, account_id: str) -> None:
    """Delete an account and, through the foreign key, its ledger entries."""
    account = get_account(db, account_id)
    accounts_repository.delete(db, account)
    _commit(db, account.user_id, account.name)
    logger.info(f"Deleted account {account_id}")
