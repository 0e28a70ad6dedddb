"""Tests for the retried unit of work."""

import sqlite3
from decimal import Decimal

import pytest
from sqlalchemy.exc import DBAPIError, OperationalError

from marketplace.domain.exceptions import ConcurrencyConflictError, ValidationError
from marketplace.infrastructure.models import ProductModel
from marketplace.infrastructure.unit_of_work import UnitOfWork, is_transient_error


def database_locked() -> OperationalError:
    return OperationalError("BEGIN IMMEDIATE", {}, sqlite3.OperationalError("database is locked"))


class SerializationFailure(Exception):
    sqlstate = "40001"


class TestIsTransientError:
    """Tests for is_transient_error."""

    def test_sqlite_busy(self) -> None:
        assert is_transient_error(database_locked())

    def test_postgres_serialization_failure(self) -> None:
        error = DBAPIError("UPDATE products", {}, SerializationFailure("could not serialize"))
        assert is_transient_error(error)

    def test_other_database_errors(self) -> None:
        error = OperationalError("SELECT", {}, sqlite3.OperationalError("no such table: x"))
        assert not is_transient_error(error)

    def test_non_database_errors(self) -> None:
        assert not is_transient_error(ValueError("database is locked"))


class TestUnitOfWork:
    """Tests for UnitOfWork.run."""

    async def test_commits_result(self, session_factory, seed) -> None:
        async def work(session):
            product = ProductModel(name="Lamp", price=Decimal("5.00"), stock_quantity=1)
            session.add(product)
            await session.flush()
            return product.id

        product_id = await UnitOfWork(session_factory).run("create", work)

        assert await seed.stock(product_id) == 1

    async def test_domain_error_rolls_back(self, session_factory, seed) -> None:
        """Domain errors abort the transaction and propagate unchanged."""
        calls = 0

        async def work(session):
            nonlocal calls
            calls += 1
            session.add(ProductModel(name="Lamp", price=Decimal("5.00"), stock_quantity=1))
            await session.flush()
            raise ValidationError("name", "rejected")

        with pytest.raises(ValidationError):
            await UnitOfWork(session_factory).run("create", work)

        assert calls == 1
        assert await seed.count(ProductModel) == 0

    async def test_transient_error_retried(self, session_factory) -> None:
        """A busy database on the first attempt succeeds on the second."""
        calls = 0

        async def work(session):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise database_locked()
            return "done"

        assert await UnitOfWork(session_factory, attempts=3).run("flaky", work) == "done"
        assert calls == 2

    async def test_retries_exhausted(self, session_factory) -> None:
        """Persistent contention surfaces as a concurrency conflict."""
        calls = 0

        async def work(session):
            nonlocal calls
            calls += 1
            raise database_locked()

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await UnitOfWork(session_factory, attempts=2).run("stuck", work)

        assert calls == 2
        assert exc_info.value.details == {"operation": "stuck", "attempts": 2}

    async def test_permanent_database_error_not_retried(self, session_factory) -> None:
        calls = 0

        async def work(session):
            nonlocal calls
            calls += 1
            raise OperationalError("SELECT", {}, sqlite3.OperationalError("no such table: x"))

        with pytest.raises(OperationalError):
            await UnitOfWork(session_factory, attempts=3).run("broken", work)

        assert calls == 1
