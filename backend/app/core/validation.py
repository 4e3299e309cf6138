"""
Field checks shared by the services.

Each check raises an INVALID_INPUT DomainError naming the field, so the same
rules hold whether a call comes through the HTTP layer or directly.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Type, TypeVar
from enum import Enum

from app.core.constants import (
    CURRENCY_PATTERN,
    EMAIL_PATTERN,
    MONEY_PRECISION,
    MONEY_SCALE,
    UUID_PATTERN,
)
from app.core.errors import invalid_input

E = TypeVar("E", bound=Enum)

CENT = Decimal("0.01")

# Smallest amount that no longer fits a Numeric(18, 2) column
MONEY_LIMIT = Decimal(10) ** (MONEY_PRECISION - MONEY_SCALE)


def require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise invalid_input(field, f"{field} is required")
    return value.strip()


def require_uuid(value: Optional[str], field: str) -> str:
    value = require_text(value, field)
    if not UUID_PATTERN.match(value):
        raise invalid_input(field, f"{field} must be a valid UUID")
    return value.lower()


def require_email(value: Optional[str], field: str = "email") -> str:
    value = require_text(value, field)
    if not EMAIL_PATTERN.match(value):
        raise invalid_input(field, f"{field} must be a valid email address")
    return value


def require_currency(value: Optional[str], field: str = "currency") -> str:
    value = require_text(value, field)
    if not CURRENCY_PATTERN.match(value):
        raise invalid_input(field, f"{field} must be a 3-character uppercase ISO currency code")
    return value


def require_positive_amount(value: Any, field: str = "amount") -> Decimal:
    """Coerce to Decimal and insist on amount > 0."""
    if value is None:
        raise invalid_input(field, f"{field} is required")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise invalid_input(field, f"{field} must be a number")
    if not amount.is_finite():
        raise invalid_input(field, f"{field} must be a number")
    if amount <= 0:
        raise invalid_input(field, f"{field} must be greater than zero")
    try:
        cents = amount.quantize(CENT)
    except InvalidOperation:
        raise invalid_input(field, f"{field} is out of range")
    if cents != amount:
        raise invalid_input(field, f"{field} must have at most 2 decimal places")
    if cents >= MONEY_LIMIT:
        raise invalid_input(field, f"{field} is out of range")
    return cents


def require_member(value: Any, enum_cls: Type[E], field: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise invalid_input(field, f"{field} must be one of: {allowed}")
