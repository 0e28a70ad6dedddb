"""State machines and enumerations for domain entities.

Deterministic state machines that define valid state transitions for
orders, plus the closed vocabularies for shipping methods, delivery
status and support tickets.
"""

from enum import Enum

from marketplace.domain.exceptions import (
    InvalidShippingMethodError,
    InvalidStateTransitionError,
    ValidationError,
)


# ============================================================================
# Order State Machine
# ============================================================================


class OrderStatus(str, Enum):
    """Order lifecycle states.

    An order only exists once checked out, so it enters as PLACED.

    State diagram:
        [checkout] ──► PLACED ◄──── reopen ────┐
                         │                     │
                         │ cancel              │
                         ▼                     │
                      CANCELLED ───────────────┘

    Every PLACED → CANCELLED credits stock and every CANCELLED → PLACED
    debits it again.
    """

    PLACED = "Placed"
    CANCELLED = "Cancelled"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _ORDER_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["OrderStatus"]:
        """Get list of valid target states.

        Returns:
            List of states that can be transitioned to.
        """
        return list(_ORDER_TRANSITIONS.get(self, set()))

    def holds_stock(self) -> bool:
        """Check if an order in this state has its quantities debited."""
        return self == OrderStatus.PLACED


# Order state transitions (defined outside enum to avoid Enum restrictions)
_ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PLACED: {OrderStatus.CANCELLED},
    OrderStatus.CANCELLED: {OrderStatus.PLACED},
}


def validate_order_transition(
    order_id: str,
    current_status: OrderStatus,
    target_status: OrderStatus,
) -> None:
    """Validate and raise if order state transition is invalid.

    Args:
        order_id: Order identifier for error message.
        current_status: Current order status.
        target_status: Target order status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="Order",
            entity_id=order_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )


# ============================================================================
# Shipping Methods
# ============================================================================


class ShippingMethod(str, Enum):
    """Shipping methods offered at checkout."""

    STANDARD = "Standard"
    EXPRESS = "Express"
    SAME_DAY = "Same-Day"

    @classmethod
    def parse(cls, value: str) -> "ShippingMethod":
        """Parse a shipping method name.

        Args:
            value: Method name as sent by the client.

        Returns:
            Matching ShippingMethod.

        Raises:
            InvalidShippingMethodError: If the name is not recognised.
        """
        try:
            return cls(value)
        except ValueError:
            raise InvalidShippingMethodError(value, [m.value for m in cls]) from None


_DELIVERY_OFFSET_DAYS: dict[str, int] = {
    ShippingMethod.STANDARD.value: 7,
    ShippingMethod.EXPRESS.value: 3,
    ShippingMethod.SAME_DAY.value: 1,
}


def delivery_offset_days(shipping_method: str) -> int:
    """Days between order date and expected delivery.

    Unrecognised methods get no offset.
    """
    return _DELIVERY_OFFSET_DAYS.get(str(getattr(shipping_method, "value", shipping_method)), 0)


# ============================================================================
# Delivery and Support Status
# ============================================================================


class DeliveryStatus(str, Enum):
    """Delivery record status."""

    PROCESSING = "Processing"
    DELIVERED = "Delivered"


class TicketStatus(str, Enum):
    """Support ticket status."""

    OPEN = "Open"
    PENDING = "Pending"
    CLOSED = "Closed"

    @classmethod
    def parse(cls, value: str) -> "TicketStatus":
        """Parse a ticket status name.

        Raises:
            ValidationError: If the name is not recognised.
        """
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                "status", f"must be one of {[s.value for s in cls]}", value
            ) from None
