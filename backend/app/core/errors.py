"""
Domain errors.

Every failure the services report is a DomainError tagged with one ErrorKind.
The context carried by each kind:

- NOT_FOUND: entity, id
- INVALID_INPUT: field, reason
- DUPLICATE_EMAIL: email
- DUPLICATE_ACCOUNT: user_id, name
- STORAGE_FAILURE: cause, transient
"""

from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    DUPLICATE_EMAIL = "duplicate_email"
    DUPLICATE_ACCOUNT = "duplicate_account"
    STORAGE_FAILURE = "storage_failure"


class DomainError(Exception):
    """A failure with a kind and the structured context for that kind."""

    def __init__(self, kind: ErrorKind, message: str, **context: Any):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.context: Dict[str, Any] = context

    def __getattr__(self, name: str) -> Any:
        context = self.__dict__.get("context", {})
        if name in context:
            return context[name]
        raise AttributeError(name)

    def __repr__(self) -> str:
        return f"DomainError({self.kind.value}, {self.message!r})"


def not_found(entity: str, entity_id: str) -> DomainError:
    return DomainError(
        ErrorKind.NOT_FOUND,
        f"{entity} not found: {entity_id}",
        entity=entity,
        id=entity_id,
    )


def invalid_input(field: str, reason: str) -> DomainError:
    return DomainError(
        ErrorKind.INVALID_INPUT,
        f"invalid input for {field}: {reason}",
        field=field,
        reason=reason,
    )


def duplicate_email(email: str) -> DomainError:
    return DomainError(
        ErrorKind.DUPLICATE_EMAIL,
        f"user with email already exists: {email}",
        email=email,
    )


def duplicate_account(user_id: str, name: str) -> DomainError:
    return DomainError(
        ErrorKind.DUPLICATE_ACCOUNT,
        f"account '{name}' already exists for user {user_id}",
        user_id=user_id,
        name=name,
    )


# SQLSTATE codes PostgreSQL uses for conflicts that succeed on a rerun
_TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03", "57014"}


def is_transient(exc: BaseException) -> bool:
    """True for serialization conflicts, deadlocks and lock timeouts."""
    if isinstance(exc, DBAPIError):
        pgcode = getattr(exc.orig, "pgcode", None)
        if pgcode in _TRANSIENT_SQLSTATES:
            return True
    if isinstance(exc, OperationalError):
        return "database is locked" in str(exc.orig)
    return False


def storage_failure(
    cause: str,
    transient: bool = False,
    exc: Optional[BaseException] = None,
) -> DomainError:
    if exc is not None and isinstance(exc, SQLAlchemyError):
        transient = transient or is_transient(exc)
    return DomainError(
        ErrorKind.STORAGE_FAILURE,
        f"storage failure: {cause}",
        cause=cause,
        transient=transient,
    )
