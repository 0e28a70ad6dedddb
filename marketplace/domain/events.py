"""Change events for the audit sink.

A change event records one insert or update of an audited entity
together with its state before and after the change. Services collect
events while a unit of work runs and hand them to the audit dispatcher
only after the transaction commits.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class ChangeAction(str, Enum):
    """Kind of change recorded by an event."""

    INSERT = "Insert"
    UPDATE = "Update"


class AuditedEntity(str, Enum):
    """Entities whose changes reach the audit sink."""

    USERS = "Users"
    PRODUCTS = "Products"
    ORDERS = "Orders"


@dataclass(frozen=True)
class ChangeEvent:
    """Before/after notification for one audited row.

    Attributes:
        entity: Audited entity name.
        action: Insert or Update.
        entity_id: Primary key of the changed row.
        before: Row state before the change, None for inserts.
        after: Row state after the change.
        actor: Who made the change.
        occurred_at: When the change was committed.
        event_id: Unique identifier for this event instance.
    """

    entity: AuditedEntity
    action: ChangeAction
    entity_id: str
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    actor: str = "system"
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: UUID = field(default_factory=uuid4)

    @classmethod
    def inserted(
        cls, entity: AuditedEntity, entity_id: Any, after: dict[str, Any], actor: str = "system"
    ) -> "ChangeEvent":
        return cls(
            entity=entity,
            action=ChangeAction.INSERT,
            entity_id=str(entity_id),
            after=after,
            actor=actor,
        )

    @classmethod
    def updated(
        cls,
        entity: AuditedEntity,
        entity_id: Any,
        before: dict[str, Any],
        after: dict[str, Any],
        actor: str = "system",
    ) -> "ChangeEvent":
        return cls(
            entity=entity,
            action=ChangeAction.UPDATE,
            entity_id=str(entity_id),
            before=before,
            after=after,
            actor=actor,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for serialization.

        Returns:
            Dictionary representation of the event.
        """
        return {
            "event_id": str(self.event_id),
            "entity": self.entity.value,
            "action": self.action.value,
            "entity_id": self.entity_id,
            "before": self.before,
            "after": self.after,
            "timestamp": self.occurred_at.isoformat(),
            "actor": self.actor,
        }
