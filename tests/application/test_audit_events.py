"""Tests for change event publication."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select
from structlog.testing import capture_logs

from marketplace.application.cart_service import CartAggregator
from marketplace.application.catalog_service import CatalogService
from marketplace.application.order_service import OrderLedger
from marketplace.domain.events import AuditedEntity, ChangeAction, ChangeEvent
from marketplace.domain.exceptions import InsufficientStockError
from marketplace.domain.value_objects import CartItemRequest
from marketplace.infrastructure.audit import (
    AuditDispatcher,
    DatabaseAuditSink,
    LogAuditSink,
    build_audit_sink,
    drain_audit_tasks,
)
from marketplace.infrastructure.models import AuditLogModel, utcnow


class FailingSink:
    async def emit(self, events) -> None:
        raise RuntimeError("sink offline")


class TestAuditDispatcher:
    """Tests for AuditDispatcher."""

    async def test_nothing_to_publish(self, audit) -> None:
        assert audit.publish([]) is None

    async def test_sink_failure_is_logged_not_raised(self) -> None:
        """A broken sink never reaches the caller."""
        dispatcher = AuditDispatcher(FailingSink())
        event = ChangeEvent.inserted(AuditedEntity.USERS, 1, after={})

        with capture_logs() as logs:
            task = dispatcher.publish([event])
            await task

        assert task.exception() is None
        [entry] = [log for log in logs if log["event"] == "Audit sink failed"]
        assert entry["log_level"] == "error"
        assert entry["event_ids"] == [str(event.event_id)]

    async def test_log_sink(self) -> None:
        event = ChangeEvent.inserted(AuditedEntity.PRODUCTS, 5, after={"price": "1.00"})

        with capture_logs() as logs:
            await LogAuditSink().emit([event])

        [entry] = logs
        assert entry["event"] == "Change event"
        assert entry["entity"] == "Products"
        assert entry["entity_id"] == "5"
        assert entry["occurred_at"] == event.occurred_at.isoformat()
        assert "timestamp" not in entry

    async def test_database_sink(self, session_factory) -> None:
        """The database sink stores one audit_log row per event."""
        events = [
            ChangeEvent.inserted(AuditedEntity.USERS, 1, after={"username": "ada"}),
            ChangeEvent.updated(AuditedEntity.USERS, 1, before={"a": 1}, after={"a": 2}, actor="api"),
        ]

        await DatabaseAuditSink(session_factory).emit(events)

        async with session_factory() as session:
            rows = list(await session.scalars(select(AuditLogModel).order_by(AuditLogModel.id)))
        assert [(r.action, r.actor) for r in rows] == [("Insert", "system"), ("Update", "api")]
        assert rows[1].before == {"a": 1}
        assert rows[0].event_id == str(events[0].event_id)

    def test_build_audit_sink(self, session_factory) -> None:
        assert isinstance(build_audit_sink("database", session_factory), DatabaseAuditSink)
        assert isinstance(build_audit_sink("log", session_factory), LogAuditSink)
        assert isinstance(build_audit_sink("carrier-pigeon", session_factory), LogAuditSink)


class TestServiceEvents:
    """Events emitted by order and catalogue operations."""

    async def test_checkout_and_cancel_events(self, session_factory, audit, audit_sink, seed) -> None:
        """Checkout emits an insert and cancellation an update with both states."""
        user_id = await seed.user()
        product_id = await seed.product(price="2.50", stock=3)
        await CartAggregator(session_factory).add_items(user_id, [CartItemRequest(product_id, 2)])
        ledger = OrderLedger(session_factory=session_factory, audit=audit)

        result = await ledger.checkout(user_id, "Standard", actor="ada")
        await ledger.cancel_order(result.order_id, actor="support")
        await drain_audit_tasks()

        inserted, updated = audit_sink.events
        assert inserted.entity == AuditedEntity.ORDERS
        assert inserted.action == ChangeAction.INSERT
        assert inserted.entity_id == str(result.order_id)
        assert inserted.after["total_price"] == "5.00"
        assert inserted.actor == "ada"
        assert updated.action == ChangeAction.UPDATE
        assert updated.before["status"] == "Placed"
        assert updated.after["status"] == "Cancelled"
        assert updated.actor == "support"

    async def test_failed_checkout_emits_nothing(self, session_factory, audit, audit_sink, seed) -> None:
        """Rolled-back transactions produce no events."""
        user_id = await seed.user()
        product_id = await seed.product(stock=2)
        await CartAggregator(session_factory).add_items(user_id, [CartItemRequest(product_id, 2)])
        await CatalogService(session_factory).inventory.restock(product_id, -1)
        ledger = OrderLedger(session_factory=session_factory, audit=audit)

        with pytest.raises(InsufficientStockError):
            await ledger.checkout(user_id, "Standard")
        await drain_audit_tasks()

        assert audit_sink.events == []

    async def test_price_change_event(self, session_factory, audit, audit_sink, seed) -> None:
        """Price updates are audited only when the price actually changes."""
        product_id = await seed.product(price="10.00")
        catalog = CatalogService(session_factory=session_factory, audit=audit)

        await catalog.update_price(product_id, Decimal("10.00"))
        await catalog.update_price(product_id, Decimal("12.50"), actor="pricing")
        await drain_audit_tasks()

        [event] = audit_sink.events
        assert event.entity == AuditedEntity.PRODUCTS
        assert event.before == {"price": "10.00"}
        assert event.after == {"price": "12.50"}
        assert event.actor == "pricing"

    async def test_promotion_creation_not_audited(self, session_factory, audit, audit_sink, seed) -> None:
        """Promotions are not an audited entity."""
        product_id = await seed.product()
        catalog = CatalogService(session_factory=session_factory, audit=audit)
        now = utcnow()
        await catalog.create_promotion(10, now, now + timedelta(days=1), [product_id])
        await drain_audit_tasks()

        assert audit_sink.events == []
