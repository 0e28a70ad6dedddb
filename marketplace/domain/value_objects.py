"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity. They are interchangeable when their values are equal.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_EVEN, Decimal
from enum import Enum
from typing import Self

from marketplace.domain.exceptions import InvalidQuantityError, ValidationError

CURRENCY_QUANTUM = Decimal("0.01")


def to_currency(amount: Decimal | int | str) -> Decimal:
    """Round an amount to currency precision using banker's rounding.

    Args:
        amount: Amount to round.

    Returns:
        Amount with exactly two decimal places.
    """
    return Decimal(amount).quantize(CURRENCY_QUANTUM, rounding=ROUND_HALF_EVEN)


def ensure_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ============================================================================
# Pricing Value Objects
# ============================================================================


@dataclass(frozen=True)
class PromotionWindow:
    """A percentage discount valid from start to end, both inclusive.

    Attributes:
        promotion_id: Promotion identifier, used for tie-breaks.
        discount_percentage: Whole-number percentage between 0 and 100.
        start: First instant the discount applies.
        end: Last instant the discount applies.
    """

    promotion_id: int
    discount_percentage: int
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        """Validate promotion constraints."""
        if not 0 <= self.discount_percentage <= 100:
            raise ValidationError(
                "discount_percentage", "must be between 0 and 100", self.discount_percentage
            )
        object.__setattr__(self, "start", ensure_utc(self.start))
        object.__setattr__(self, "end", ensure_utc(self.end))
        if self.end < self.start:
            raise ValidationError("end_date", "must not be before start_date", self.end.isoformat())

    def is_active(self, as_of: datetime) -> bool:
        """Check whether the window contains as_of."""
        return self.start <= ensure_utc(as_of) <= self.end


@dataclass(frozen=True)
class PriceQuote:
    """Result of pricing one line at a given instant.

    Attributes:
        unit_price: List price per unit.
        discount_percent: Applied discount, 0 when no promotion is active.
        effective_unit_price: unit_price x (1 - discount/100), rounded.
        line_total: quantity x effective_unit_price.
        promotion_id: Promotion that supplied the discount, if any.
    """

    unit_price: Decimal
    discount_percent: int
    effective_unit_price: Decimal
    line_total: Decimal
    promotion_id: int | None = None


@dataclass(frozen=True)
class LineSnapshot:
    """A cart line priced at checkout time."""

    product_id: int
    quantity: int
    quote: PriceQuote


# ============================================================================
# Cart Value Objects
# ============================================================================


@dataclass(frozen=True)
class CartItemRequest:
    """Requested addition of a product to a cart."""

    product_id: int
    quantity: int


class RejectionReason(str, Enum):
    """Why an add-to-cart item was not accepted."""

    INVALID_QUANTITY = "INVALID_QUANTITY"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"


@dataclass(frozen=True)
class CartItemOutcome:
    """Per-item result of an add-to-cart call.

    Attributes:
        product_id: Product the item referred to.
        accepted: Whether the quantity was added to the cart.
        reason: Rejection reason when not accepted.
        quantity_in_cart: Line quantity after the call.
    """

    product_id: int
    accepted: bool
    reason: RejectionReason | None = None
    quantity_in_cart: int = 0

    @classmethod
    def accept(cls, product_id: int, quantity_in_cart: int) -> Self:
        return cls(product_id=product_id, accepted=True, quantity_in_cart=quantity_in_cart)

    @classmethod
    def reject(cls, product_id: int, reason: RejectionReason, quantity_in_cart: int = 0) -> Self:
        return cls(
            product_id=product_id,
            accepted=False,
            reason=reason,
            quantity_in_cart=quantity_in_cart,
        )


def require_positive_quantity(quantity: int) -> int:
    """Return quantity if positive.

    Raises:
        InvalidQuantityError: If quantity is zero or negative.
    """
    if quantity <= 0:
        raise InvalidQuantityError(quantity)
    return quantity


# ============================================================================
# Checkout Value Objects
# ============================================================================


@dataclass(frozen=True)
class CheckoutResult:
    """Outcome of a successful checkout."""

    order_id: int
    total: Decimal
