"""
Enumerations and fixed formats shared by the accounting modules.
"""

import re
from enum import Enum


class AccountType(str, Enum):
    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    CREDIT_CARD = "CREDIT_CARD"
    CASH = "CASH"
    INVESTMENT = "INVESTMENT"


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


class TransferPolicy(str, Enum):
    DEBIT = "debit"
    NONE = "none"


# ISO 4217 style: three uppercase letters
CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")

UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

# Money columns are Numeric(18, 2)
MONEY_PRECISION = 18
MONEY_SCALE = 2
