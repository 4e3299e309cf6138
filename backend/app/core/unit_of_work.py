"""
Atomic unit of work.

A UnitOfWork owns one session (and so one pooled connection) for the span of
a ``with`` block. Repositories receive ``uow.session`` explicitly. Nothing is
committed unless ``commit()`` is called inside the block; leaving the block
any other way rolls everything back and returns the connection to the pool.

    with UnitOfWork(SessionLocal, timeout=5) as uow:
        entry = ledger_repository.create(uow.session, entry)
        accounts_repository.apply_balance_delta(uow.session, account_id, delta)
        uow.commit()
"""

import logging
import time
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import DomainError, storage_failure

logger = logging.getLogger(__name__)


class UnitOfWork:
    """All-or-nothing group of statements on a single session."""

    def __init__(self, session_factory: sessionmaker, timeout: Optional[float] = None):
        self.session_factory = session_factory
        self.timeout = timeout
        self.session: Optional[Session] = None
        self._deadline: Optional[float] = None
        self._committed = False

    def __enter__(self) -> "UnitOfWork":
        if self.timeout is not None:
            self._deadline = time.monotonic() + self.timeout
        self.session = self.session_factory()
        try:
            self.session.begin()
            self._push_down_timeout()
        except SQLAlchemyError as e:
            self.session.close()
            raise storage_failure(f"could not begin unit of work: {e}", exc=e) from e
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if not self._committed:
                self._rollback(exc)
        finally:
            self.session.close()

        if isinstance(exc, SQLAlchemyError):
            cause = getattr(exc, "orig", None) or exc
            raise storage_failure(str(cause), exc=exc) from exc
        return False

    def _rollback(self, exc: Optional[BaseException]) -> None:
        if exc is not None and not isinstance(exc, DomainError):
            logger.warning(f"Rolling back unit of work after {type(exc).__name__}: {exc}")
        try:
            self.session.rollback()
        except SQLAlchemyError as e:
            # The original error is the one the caller needs to see
            logger.error(f"Rollback failed: {e}")

    def _push_down_timeout(self) -> None:
        """Let PostgreSQL cancel statements that run past the deadline."""
        if self.timeout is None:
            return
        if self.session.get_bind().dialect.name != "postgresql":
            return
        millis = max(int(self.timeout * 1000), 1)
        self.session.connection().exec_driver_sql(f"SET LOCAL statement_timeout = {millis}")

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None when there is no deadline."""
        if self._deadline is None:
            return None
        return self._deadline - time.monotonic()

    def check_deadline(self) -> None:
        """Abort the unit once the caller's deadline has passed."""
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise storage_failure("unit of work deadline exceeded", transient=True)

    def commit(self) -> None:
        self.check_deadline()
        self.session.commit()
        self._committed = True
