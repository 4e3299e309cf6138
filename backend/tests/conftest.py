"""
Shared fixtures.

Every test gets its own file-backed SQLite database, so threads in the
concurrency tests each use a real pooled connection.
"""

import os
import sys
import tempfile
from decimal import Decimal

# Settings are read at import time; point them at a scratch database first
_scratch_dir = tempfile.mkdtemp(prefix="accounting-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_scratch_dir, 'app.db')}"
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("LOG_LEVEL", "WARNING")

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from fastapi.testclient import TestClient

from app.core.database import Base, create_db_engine, create_session_factory, get_session_factory
from app.main import app
from app.modules.accounts import repository as accounts_repository
from app.modules.accounts.models import Account
from app.modules.ledger import repository as ledger_repository
from app.modules.users.models import User


@pytest.fixture
def engine(tmp_path):
    db_engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    counter = {"n": 0}

    def _make(name="Test User", email=None):
        counter["n"] += 1
        with session_factory() as db:
            user = User(name=name, email=email or f"user{counter['n']}@example.com")
            db.add(user)
            db.commit()
            return user

    return _make


@pytest.fixture
def make_account(session_factory, make_user):
    """Account with an opening balance seeded directly in the database."""

    def _make(balance="0", currency="USD", name="Checking", user=None):
        user = user or make_user()
        with session_factory() as db:
            account = accounts_repository.create(db, Account(
                user_id=user.id,
                name=name,
                type="CHECKING",
                currency=currency,
            ))
            if Decimal(balance) != 0:
                accounts_repository.apply_balance_delta(db, account.id, Decimal(balance))
            db.commit()
            return account.id

    return _make


@pytest.fixture
def balance_of(session_factory):
    """Read the stored balance of an account in a fresh session."""

    def _balance(account_id) -> Decimal:
        with session_factory() as db:
            return db.get(Account, account_id).balance

    return _balance


@pytest.fixture
def entry_count(session_factory):
    def _count(account_id) -> int:
        with session_factory() as db:
            return ledger_repository.count_by_account(db, account_id)

    return _count
