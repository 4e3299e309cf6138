"""
Account API routes.

Balances are read-only here; they change only through /transactions.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.modules.accounts.models import Account
from app.modules.accounts.services import (
    create_account,
    delete_account,
    get_account,
    update_account,
)

router = APIRouter()


class CreateAccountRequest(BaseModel):
    """Request body for opening an account."""
    user_id: str
    name: str
    type: str  # CHECKING, SAVINGS, CREDIT_CARD, CASH, INVESTMENT
    currency: Optional[str] = None  # defaults to DEFAULT_CURRENCY


class UpdateAccountRequest(BaseModel):
    """Request body for editing account metadata. Omitted fields are left unchanged."""
    name: Optional[str] = None
    type: Optional[str] = None
    currency: Optional[str] = None


def account_to_dict(account: Account) -> dict:
    return {
        "id": account.id,
        "user_id": account.user_id,
        "name": account.name,
        "type": account.type,
        "balance": float(account.balance) if account.balance is not None else 0.0,
        "currency": account.currency,
    }


@router.post("", status_code=201)
def create(request: CreateAccountRequest, db: Session = Depends(get_db)):
    """Open an account for a user. The balance starts at 0."""
    account = create_account(
        db,
        user_id=request.user_id,
        name=request.name,
        account_type=request.type,
        currency=request.currency,
    )
    return account_to_dict(account)


@router.get("/{account_id}")
def get(account_id: uuid.UUID, db: Session = Depends(get_db)):
    return account_to_dict(get_account(db, str(account_id)))


@router.put("/{account_id}")
def update(account_id: uuid.UUID, request: UpdateAccountRequest, db: Session = Depends(get_db)):
    """Rename, retype or change the currency of an account."""
    account = update_account(
        db,
        str(account_id),
        name=request.name,
        account_type=request.type,
        currency=request.currency,
    )
    return account_to_dict(account)


@router.delete("/{account_id}", status_code=204)
def delete(account_id: uuid.UUID, db: Session = Depends(get_db)):
    """Delete an account and its transactions."""
    delete_account(db, str(account_id))
    return Response(status_code=204)
