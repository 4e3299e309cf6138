"""
User API routes.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.modules.accounts.router import account_to_dict
from app.modules.accounts.services import list_user_accounts
from app.modules.users.models import User
from app.modules.users.services import (
    create_user,
    delete_user,
    get_user,
    get_user_by_email,
    update_user,
)

router = APIRouter()


class CreateUserRequest(BaseModel):
    """Request body for registering a user."""
    name: str
    email: str


class UpdateUserRequest(BaseModel):
    """Request body for editing a user. Omitted fields are left unchanged."""
    name: Optional[str] = None
    email: Optional[str] = None


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }


@router.post("", status_code=201)
def create(request: CreateUserRequest, db: Session = Depends(get_db)):
    """Register a new user."""
    return user_to_dict(create_user(db, request.name, request.email))


@router.get("/search")
def search_by_email(email: str = Query(...), db: Session = Depends(get_db)):
    """Look a user up by email address."""
    return user_to_dict(get_user_by_email(db, email))


@router.get("/{user_id}")
def get(user_id: uuid.UUID, db: Session = Depends(get_db)):
    return user_to_dict(get_user(db, str(user_id)))


@router.put("/{user_id}")
def update(user_id: uuid.UUID, request: UpdateUserRequest, db: Session = Depends(get_db)):
    """Update name and/or email."""
    return user_to_dict(update_user(db, str(user_id), name=request.name, email=request.email))


@router.delete("/{user_id}", status_code=204)
def delete(user_id: uuid.UUID, db: Session = Depends(get_db)):
    """Delete a user with all of their accounts and transactions."""
    delete_user(db, str(user_id))
    return Response(status_code=204)


@router.get("/{user_id}/accounts")
def list_accounts(user_id: uuid.UUID, db: Session = Depends(get_db)):
    """List the accounts a user owns, newest first."""
    accounts = list_user_accounts(db, str(user_id))
    return [account_to_dict(acc) for acc in accounts]
