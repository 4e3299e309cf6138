"""
Transaction (ledger entry) API routes.

Writes answer with the entry and the account as it stands after the
booking, so callers never need a second read to see the new balance.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.orm import sessionmaker

from app.core.database import get_session_factory
from app.modules.accounts.router import account_to_dict
from app.modules.ledger.balance import LedgerResult
from app.modules.ledger.models import Transaction
from app.modules.ledger.services import TransactionService

router = APIRouter()


class CreateTransactionRequest(BaseModel):
    """Request body for booking a transaction."""
    account_id: str
    amount: Decimal
    currency: str
    type: str  # INCOME, EXPENSE, TRANSFER
    description: str = ""
    category: str = ""
    occurred_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("occurred_at", "date")
    )


class UpdateTransactionRequest(BaseModel):
    """Request body for editing a transaction. Omitted fields are left unchanged."""
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    occurred_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("occurred_at", "date")
    )


def get_transaction_service(
    session_factory: sessionmaker = Depends(get_session_factory),
) -> TransactionService:
    return TransactionService(session_factory)


def transaction_to_dict(entry: Transaction) -> dict:
    return {
        "id": entry.id,
        "account_id": entry.account_id,
        "amount": float(entry.amount),
        "currency": entry.currency,
        "description": entry.description,
        "category": entry.category,
        "type": entry.type,
        "occurred_at": entry.occurred_at.isoformat() if entry.occurred_at else None,
    }


def result_to_dict(result: LedgerResult) -> dict:
    return {
        "entry": transaction_to_dict(result.entry),
        "updated_account": account_to_dict(result.account),
    }


@router.post("/transactions", status_code=201)
def create(
    request: CreateTransactionRequest,
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Book a transaction. The entry and the balance change commit together.

    - INCOME adds the amount to the account balance
    - EXPENSE subtracts it
    - TRANSFER follows TRANSFER_BALANCE_POLICY
    """
    result = service.create_transaction(
        account_id=request.account_id,
        amount=request.amount,
        currency=request.currency,
        transaction_type=request.type,
        description=request.description,
        category=request.category,
        occurred_at=request.occurred_at,
    )
    return result_to_dict(result)


@router.get("/transactions/{transaction_id}")
def get(
    transaction_id: uuid.UUID,
    service: TransactionService = Depends(get_transaction_service),
):
    return transaction_to_dict(service.get_transaction(str(transaction_id)))


@router.put("/transactions/{transaction_id}")
def update(
    transaction_id: uuid.UUID,
    request: UpdateTransactionRequest,
    service: TransactionService = Depends(get_transaction_service),
):
    """Edit a transaction; amount or type changes move the balance by the difference."""
    result = service.update_transaction(
        str(transaction_id),
        amount=request.amount,
        currency=request.currency,
        transaction_type=request.type,
        description=request.description,
        category=request.category,
        occurred_at=request.occurred_at,
    )
    return result_to_dict(result)


@router.delete("/transactions/{transaction_id}")
def delete(
    transaction_id: uuid.UUID,
    service: TransactionService = Depends(get_transaction_service),
):
    """Delete a transaction and reverse its effect on the balance."""
    return result_to_dict(service.delete_transaction(str(transaction_id)))


@router.get("/accounts/{account_id}/transactions")
def list_for_account(
    account_id: uuid.UUID,
    service: TransactionService = Depends(get_transaction_service),
):
    """List an account's transactions, most recent first."""
    entries = service.list_account_transactions(str(account_id))
    return [transaction_to_dict(e) for e in entries]
