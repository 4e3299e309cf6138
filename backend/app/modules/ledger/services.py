"""
Transaction service.

Checks the business rules for ledger entries (positive amount, known type,
well-formed currency, existing account with the same currency) and hands
every write to the BalanceCoordinator. This module holds no balance logic of
its own.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from app.core.config import Settings, settings as default_settings
from app.core.constants import TransactionType
from app.core.errors import not_found
from app.core.validation import (
    require_currency,
    require_member,
    require_positive_amount,
    require_uuid,
)
from app.modules.accounts import repository as accounts_repository
from app.modules.ledger import repository as ledger_repository
from app.modules.ledger.balance import BalanceCoordinator, LedgerDraft, LedgerResult
from app.modules.ledger.models import Transaction

logger = logging.getLogger(__name__)


def _as_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class TransactionService:
    """Ledger entry operations for one process."""

    def __init__(self, session_factory: sessionmaker, settings: Optional[Settings] = None):
        settings = settings or default_settings
        self.session_factory = session_factory
        self.coordinator = BalanceCoordinator(
            session_factory,
            transfer_policy=settings.TRANSFER_BALANCE_POLICY,
            timeout=settings.UNIT_OF_WORK_TIMEOUT,
        )

    def create_transaction(
        self,
        account_id: str,
        amount: Any,
        currency: str,
        transaction_type: Any,
        description: str = "",
        category: str = "",
        occurred_at: Optional[datetime] = None,
        timeout: Optional[float] = None,
    ) -> LedgerResult:
        """Book a new entry and adjust the account balance in one unit of work."""
        account_id = require_uuid(account_id, "account_id")
        amount = require_positive_amount(amount)
        currency = require_currency(currency)
        transaction_type = require_member(transaction_type, TransactionType, "type")

        result = self.coordinator.append(
            LedgerDraft(
                account_id=account_id,
                amount=amount,
                currency=currency,
                type=transaction_type,
                description=description or "",
                category=category or "",
                occurred_at=_as_utc_naive(occurred_at),
            ),
            timeout=timeout,
        )

        logger.info(
            f"Created {transaction_type.value} transaction {result.entry.id} "
            f"of {amount} {currency} on account {account_id}"
        )
        return result

    def get_transaction(self, transaction_id: str) -> Transaction:
        with self.session_factory() as db:
            entry = ledger_repository.get_by_id(db, transaction_id)
            if entry is None:
                raise not_found("transaction", transaction_id)
            return entry

    def list_account_transactions(self, account_id: str) -> List[Transaction]:
        with self.session_factory() as db:
            if accounts_repository.get_by_id(db, account_id) is None:
                raise not_found("account", account_id)
            return ledger_repository.list_by_account(db, account_id)

    def update_transaction(
        self,
        transaction_id: str,
        amount: Any = None,
        currency: Optional[str] = None,
        transaction_type: Any = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        occurred_at: Optional[datetime] = None,
        timeout: Optional[float] = None,
    ) -> LedgerResult:
        """
        Change the supplied fields of an entry. When amount or type change,
        the account balance moves by the difference in the same unit of work.
        """
        changes: Dict[str, Any] = {}
        if amount is not None:
            changes["amount"] = require_positive_amount(amount)
        if transaction_type is not None:
            changes["type"] = require_member(transaction_type, TransactionType, "type")
        if currency is not None:
            changes["currency"] = require_currency(currency)
        if description is not None:
            changes["description"] = description
        if category is not None:
            changes["category"] = category
        if occurred_at is not None:
            changes["occurred_at"] = _as_utc_naive(occurred_at)

        result = self.coordinator.revise(transaction_id, changes, timeout=timeout)

        logger.info(f"Updated transaction {transaction_id} ({', '.join(sorted(changes)) or 'no changes'})")
        return result

    def delete_transaction(self, transaction_id: str, timeout: Optional[float] = None) -> LedgerResult:
        """Delete an entry and reverse its effect on the account balance."""
        result = self.coordinator.remove(transaction_id, timeout=timeout)
        logger.info(f"Deleted transaction {transaction_id} from account {result.account.id}")
        return result

    def reconcile(self, account_id: str) -> Dict[str, Decimal]:
        """
        Compare the stored balance with the signed sum of the account's
        entries. The two agree whenever every ledger change went through
        the coordinator. Transfers are counted under the current
        TRANSFER_BALANCE_POLICY.
        """
        transfer_sign = self.coordinator.delta_for(TransactionType.TRANSFER, Decimal("1"))
        with self.session_factory() as db:
            totals = ledger_repository.balance_and_ledger_total(db, account_id, transfer_sign)
        if totals is None:
            raise not_found("account", account_id)
        balance, ledger_total = totals
        return {
            "balance": balance,
            "ledger_total": ledger_total,
            "difference": balance - ledger_total,
        }
