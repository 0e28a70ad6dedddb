"""Delivery date and tracking identifier rules."""

from datetime import date, datetime, timedelta

from marketplace.domain.state_machines import ShippingMethod, delivery_offset_days
from marketplace.domain.value_objects import ensure_utc

TRACKING_PREFIX = "TRACK"


def expected_delivery_date(order_date: datetime, shipping_method: ShippingMethod | str) -> date:
    """Compute the expected delivery date for an order.

    Args:
        order_date: Instant the order was placed.
        shipping_method: Shipping method chosen at checkout.

    Returns:
        Calendar date of the order plus the method's offset in days.
    """
    offset = delivery_offset_days(shipping_method)
    return ensure_utc(order_date).date() + timedelta(days=offset)


def generate_tracking_id(order_id: int, generated_at: datetime) -> str:
    """Build a tracking identifier such as TRACK-42-20240101093000."""
    stamp = ensure_utc(generated_at).strftime("%Y%m%d%H%M%S")
    return f"{TRACKING_PREFIX}-{order_id}-{stamp}"
