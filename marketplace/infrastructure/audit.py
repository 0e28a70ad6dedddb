"""Audit sink for change events.

Services hand committed change events to an AuditDispatcher, which
delivers them to the configured sink on a background task. Delivery is
best-effort: a failing sink is logged and never affects the business
transaction that produced the events.
"""

import asyncio
from collections.abc import Sequence
from typing import Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.domain.events import ChangeEvent
from marketplace.infrastructure.models import AuditLogModel

logger = structlog.get_logger()

# Strong references so in-flight deliveries are not garbage collected
_pending_tasks: set[asyncio.Task[None]] = set()


class AuditSink(Protocol):
    """Receives batches of committed change events."""

    async def emit(self, events: Sequence[ChangeEvent]) -> None: ...


class LogAuditSink:
    """Writes change events to the structured log."""

    async def emit(self, events: Sequence[ChangeEvent]) -> None:
        for event in events:
            fields = event.to_dict()
            # The log processor stamps its own "timestamp" key
            fields["occurred_at"] = fields.pop("timestamp")
            logger.info("Change event", **fields)


class DatabaseAuditSink:
    """Persists change events to the audit_log table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def emit(self, events: Sequence[ChangeEvent]) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                session.add_all(
                    AuditLogModel(
                        event_id=str(event.event_id),
                        entity=event.entity.value,
                        entity_id=event.entity_id,
                        action=event.action.value,
                        before=event.before,
                        after=event.after,
                        actor=event.actor,
                        occurred_at=event.occurred_at,
                    )
                    for event in events
                )


def build_audit_sink(kind: str, session_factory: async_sessionmaker[AsyncSession]) -> AuditSink:
    """Create the sink named by configuration.

    Args:
        kind: "log" or "database".
        session_factory: Session factory for the database sink.

    Returns:
        Configured audit sink.
    """
    if kind == "database":
        return DatabaseAuditSink(session_factory)
    if kind != "log":
        logger.warning("Unknown audit sink, falling back to log", audit_sink=kind)
    return LogAuditSink()


class AuditDispatcher:
    """Fire-and-forget delivery of change events."""

    def __init__(self, sink: AuditSink) -> None:
        self.sink = sink

    def publish(self, events: Sequence[ChangeEvent]) -> asyncio.Task[None] | None:
        """Schedule delivery of events on a background task.

        Must be called only after the transaction that produced the
        events has committed.

        Args:
            events: Change events to deliver.

        Returns:
            The delivery task, or None when there is nothing to send.
        """
        if not events:
            return None
        task = asyncio.create_task(self._deliver(list(events)))
        _pending_tasks.add(task)
        task.add_done_callback(_pending_tasks.discard)
        return task

    async def _deliver(self, events: list[ChangeEvent]) -> None:
        try:
            await self.sink.emit(events)
        except Exception:
            logger.exception(
                "Audit sink failed",
                sink=type(self.sink).__name__,
                event_ids=[str(e.event_id) for e in events],
            )


async def drain_audit_tasks() -> None:
    """Wait for all scheduled audit deliveries to finish."""
    if _pending_tasks:
        await asyncio.gather(*list(_pending_tasks), return_exceptions=True)
