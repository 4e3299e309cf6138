"""
Balance consistency between the ledger and the account aggregate.

An account's balance is the signed sum of its ledger entries. Every change to
the ledger goes through BalanceCoordinator, which books the entry change and
the matching balance change in one unit of work:

    1. begin
    2. insert / update / delete the ledger row
    3. UPDATE accounts SET balance = balance + :delta WHERE id = :account_id
    4. commit

Step 3 is computed by the database, never read into Python and written back,
so concurrent bookings on one account cannot lose each other's updates. Any
failure in steps 2-4 rolls back both writes. Failures are raised to the
caller; nothing is retried here.

Signed effect of an entry:

    INCOME    +amount
    EXPENSE   -amount
    TRANSFER  -amount under the 'debit' policy, 0 under 'none'
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import sessionmaker

from app.core.constants import TransactionType, TransferPolicy
from app.core.errors import invalid_input, not_found
from app.core.unit_of_work import UnitOfWork
from app.core.validation import require_member, require_positive_amount
from app.modules.accounts import repository as accounts_repository
from app.modules.accounts.models import Account
from app.modules.ledger import repository as ledger_repository
from app.modules.ledger.models import Transaction
from app.shared.models.base import new_id, utcnow

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def signed_delta(
    transaction_type: TransactionType,
    amount: Decimal,
    transfer_policy: TransferPolicy = TransferPolicy.DEBIT,
) -> Decimal:
    """Balance change an entry of this type and amount represents."""
    transaction_type = TransactionType(transaction_type)
    if transaction_type == TransactionType.INCOME:
        return amount
    if transaction_type == TransactionType.EXPENSE:
        return -amount
    if TransferPolicy(transfer_policy) == TransferPolicy.DEBIT:
        return -amount
    return ZERO


@dataclass
class LedgerDraft:
    """A validated entry that has not been booked yet."""
    account_id: str
    amount: Decimal
    currency: str
    type: TransactionType
    description: str = ""
    category: str = ""
    occurred_at: Optional[datetime] = None
    id: Optional[str] = None


@dataclass
class LedgerResult:
    """The booked entry and the account as it stands after the booking."""
    entry: Transaction
    account: Account


# Entry fields a revision may change
REVISABLE_FIELDS = ("amount", "currency", "description", "category", "type", "occurred_at")


class BalanceCoordinator:
    """Books ledger changes together with their balance effect."""

    def __init__(
        self,
        session_factory: sessionmaker,
        transfer_policy: TransferPolicy = TransferPolicy.DEBIT,
        timeout: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.transfer_policy = TransferPolicy(transfer_policy)
        self.timeout = timeout

    def delta_for(self, entry_type: TransactionType, amount: Decimal) -> Decimal:
        return signed_delta(entry_type, amount, self.transfer_policy)

    def append(self, draft: LedgerDraft, timeout: Optional[float] = None) -> LedgerResult:
        """Insert an entry and add its signed amount to the account balance."""
        amount = require_positive_amount(draft.amount)
        entry_type = require_member(draft.type, TransactionType, "type")
        delta = self.delta_for(entry_type, amount)

        with self._unit(timeout) as uow:
            db = uow.session
            account = accounts_repository.get_by_id(db, draft.account_id)
            if account is None:
                raise not_found("account", draft.account_id)
            if draft.currency != account.currency:
                raise invalid_input("currency", f"currency must match the account currency {account.currency}")

            uow.check_deadline()
            entry = ledger_repository.create(db, Transaction(
                id=draft.id or new_id(),
                account_id=draft.account_id,
                amount=amount,
                currency=draft.currency,
                description=draft.description or "",
                category=draft.category or "",
                occurred_at=draft.occurred_at or utcnow(),
                type=entry_type.value,
            ))

            uow.check_deadline()
            self._apply(db, draft.account_id, delta)
            account = accounts_repository.refresh_balance(db, account)
            uow.commit()

        logger.debug(f"Booked {entry_type.value} {amount} on account {account.id}, delta {delta}")
        return LedgerResult(entry=entry, account=account)

    def revise(
        self,
        entry_id: str,
        changes: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> LedgerResult:
        """
        Apply field changes to an entry. The balance moves by the difference
        between the entry's new and old signed effect.
        """
        changes = dict(changes)
        unknown = set(changes) - set(REVISABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot revise fields: {', '.join(sorted(unknown))}")
        if "amount" in changes:
            changes["amount"] = require_positive_amount(changes["amount"])
        if "type" in changes:
            changes["type"] = require_member(changes["type"], TransactionType, "type")

        with self._unit(timeout) as uow:
            db = uow.session
            entry = ledger_repository.get_by_id(db, entry_id, for_update=True)
            if entry is None:
                raise not_found("transaction", entry_id)
            account = accounts_repository.get_by_id(db, entry.account_id)
            if "currency" in changes and changes["currency"] != account.currency:
                raise invalid_input("currency", f"currency must match the account currency {account.currency}")

            old_effect = self.delta_for(entry.type, entry.amount)
            for field, value in changes.items():
                setattr(entry, field, value.value if field == "type" else value)
            new_effect = self.delta_for(entry.type, entry.amount)
            delta = new_effect - old_effect

            uow.check_deadline()
            entry = ledger_repository.update(db, entry)

            uow.check_deadline()
            if delta != ZERO:
                self._apply(db, entry.account_id, delta)
            account = accounts_repository.refresh_balance(db, account)
            uow.commit()

        logger.debug(f"Revised entry {entry_id} on account {account.id}, delta {delta}")
        return LedgerResult(entry=entry, account=account)

    def remove(self, entry_id: str, timeout: Optional[float] = None) -> LedgerResult:
        """Delete an entry and take its signed effect back out of the balance."""
        with self._unit(timeout) as uow:
            db = uow.session
            entry = ledger_repository.get_by_id(db, entry_id, for_update=True)
            if entry is None:
                raise not_found("transaction", entry_id)

            delta = -self.delta_for(entry.type, entry.amount)

            uow.check_deadline()
            ledger_repository.delete(db, entry)

            uow.check_deadline()
            if delta != ZERO:
                self._apply(db, entry.account_id, delta)
            account = accounts_repository.get_by_id(db, entry.account_id)
            account = accounts_repository.refresh_balance(db, account)
            uow.commit()

        logger.debug(f"Removed entry {entry_id} from account {account.id}, delta {delta}")
        return LedgerResult(entry=entry, account=account)

    def _unit(self, timeout: Optional[float]) -> UnitOfWork:
        return UnitOfWork(self.session_factory, timeout=timeout if timeout is not None else self.timeout)

    def _apply(self, db, account_id: str, delta: Decimal) -> None:
        if not accounts_repository.apply_balance_delta(db, account_id, delta):
            # Account deleted after the lookup; the unit rolls back
            raise not_found("account", account_id)
