"""
Tests for the core helpers: field validation, domain errors, logging
and the unit of work.

Run with: pytest tests/test_core.py -v
"""

import json
import logging
import pytest
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from app.core.config import Settings
from app.core.constants import AccountType
from app.core.errors import DomainError, ErrorKind, duplicate_account, not_found, storage_failure
from app.core.logging_config import JsonFormatter, RequestIdFilter, request_id_var
from app.core.unit_of_work import UnitOfWork
from app.core.validation import (
    require_currency,
    require_email,
    require_member,
    require_positive_amount,
    require_uuid,
)


class TestValidation:

    @pytest.mark.parametrize("value,expected", [
        ("10", Decimal("10.00")),
        (Decimal("0.01"), Decimal("0.01")),
        (12.5, Decimal("12.50")),
        ("9999999999999999.99", Decimal("9999999999999999.99")),
    ])
    def test_positive_amounts(self, value, expected):
        assert require_positive_amount(value) == expected

    @pytest.mark.parametrize("value,reason", [
        ("0", "amount must be greater than zero"),
        ("-3", "amount must be greater than zero"),
        ("abc", "amount must be a number"),
        ("NaN", "amount must be a number"),
        ("1.001", "amount must have at most 2 decimal places"),
        ("12345678901234567.89", "amount is out of range"),
        ("10000000000000000", "amount is out of range"),
        ("1e25", "amount is out of range"),
        ("1e40", "amount is out of range"),
        (None, "amount is required"),
    ])
    def test_rejected_amounts(self, value, reason):
        with pytest.raises(DomainError) as exc_info:
            require_positive_amount(value)
        assert exc_info.value.kind == ErrorKind.INVALID_INPUT
        assert exc_info.value.reason == reason

    @pytest.mark.parametrize("value", ["usd", "US", "USDX", "", None])
    def test_bad_currency(self, value):
        with pytest.raises(DomainError):
            require_currency(value)

    def test_uuid_is_normalised(self):
        assert require_uuid("A0EEBC99-9C0B-4EF8-BB6D-6BB9BD380A11", "id") == "a0eebc99-9c0b-4ef8-bb6d-6bb9bd380a11"

    def test_email(self):
        assert require_email(" ada@example.com ") == "ada@example.com"
        with pytest.raises(DomainError):
            require_email("ada@")

    def test_member_lists_allowed_values(self):
        assert require_member("CASH", AccountType, "type") is AccountType.CASH
        with pytest.raises(DomainError) as exc_info:
            require_member("LOAN", AccountType, "type")
        assert "CHECKING" in exc_info.value.reason


class TestDomainErrors:

    def test_context_is_reachable_as_attributes(self):
        err = not_found("account", "abc")
        assert err.kind == ErrorKind.NOT_FOUND
        assert err.entity == "account"
        assert err.id == "abc"
        assert str(err) == "account not found: abc"

    def test_unknown_attribute(self):
        with pytest.raises(AttributeError):
            duplicate_account("u1", "Checking").email

    def test_storage_failure_classifies_lock_errors(self):
        locked = OperationalError("BEGIN", {}, Exception("database is locked"))
        broken = OperationalError("BEGIN", {}, Exception("no such table: accounts"))

        assert storage_failure("x", exc=locked).transient is True
        assert storage_failure("x", exc=broken).transient is False
        assert storage_failure("deadline", transient=True).transient is True


class TestLogging:

    def _record(self, **extra):
        record = logging.LogRecord("app.test", logging.INFO, __file__, 1, "booked %s", ("entry",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_line_carries_extra_fields(self):
        token = request_id_var.set("req-1")
        try:
            record = self._record(status=201)
            RequestIdFilter().filter(record)
            payload = json.loads(JsonFormatter().format(record))
        finally:
            request_id_var.reset(token)

        assert payload["message"] == "booked entry"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "app.test"
        assert payload["request_id"] == "req-1"
        assert payload["status"] == 201

    def test_no_request_id_outside_requests(self):
        record = self._record()
        RequestIdFilter().filter(record)
        assert "request_id" not in json.loads(JsonFormatter().format(record))


class TestUnitOfWork:

    def test_uncommitted_work_is_rolled_back(self, session_factory, make_user):
        user = make_user(name="Before")

        with UnitOfWork(session_factory) as uow:
            uow.session.execute(text("UPDATE users SET name = 'After' WHERE id = :id"), {"id": user.id})

        with session_factory() as db:
            assert db.execute(text("SELECT name FROM users WHERE id = :id"), {"id": user.id}).scalar() == "Before"

    def test_storage_errors_become_domain_errors(self, session_factory):
        with pytest.raises(DomainError) as exc_info:
            with UnitOfWork(session_factory) as uow:
                uow.session.execute(text("SELECT * FROM missing_table"))

        assert exc_info.value.kind == ErrorKind.STORAGE_FAILURE
        assert "missing_table" in exc_info.value.cause

    def test_domain_errors_pass_through(self, session_factory):
        with pytest.raises(DomainError) as exc_info:
            with UnitOfWork(session_factory):
                raise not_found("account", "abc")
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    def test_deadline(self, session_factory):
        with UnitOfWork(session_factory, timeout=60) as uow:
            assert 0 < uow.remaining() <= 60
            uow.check_deadline()
            uow.commit()

        with pytest.raises(DomainError) as exc_info:
            with UnitOfWork(session_factory, timeout=0) as uow:
                uow.commit()
        assert exc_info.value.transient is True


class TestSettings:

    def test_default_database_url_names_its_driver(self):
        default_url = Settings.model_fields["DATABASE_URL"].default
        assert default_url.startswith("postgresql+psycopg2://")
