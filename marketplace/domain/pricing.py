"""Line pricing with promotional discounts.

The engine is pure: callers pass in the list price and the promotions
linked to the product, and the engine decides which discount applies at
the given instant. Checkout calls it once per line and stores the result
on the order line, so later promotion changes never reach existing
orders.
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.value_objects import (
    PriceQuote,
    PromotionWindow,
    require_positive_quantity,
    to_currency,
)


class PricingEngine:
    """Computes effective line prices.

    When more than one promotion is active for a product at the same
    instant, the one with the lowest promotion_id wins.
    """

    def select_promotion(
        self,
        promotions: Iterable[PromotionWindow],
        as_of: datetime,
    ) -> PromotionWindow | None:
        """Pick the promotion that applies at as_of.

        Args:
            promotions: Promotions linked to the product.
            as_of: Pricing instant.

        Returns:
            The active promotion with the lowest id, or None.
        """
        active = [p for p in promotions if p.is_active(as_of)]
        if not active:
            return None
        return min(active, key=lambda p: p.promotion_id)

    def price(
        self,
        list_price: Decimal,
        quantity: int,
        as_of: datetime,
        promotions: Iterable[PromotionWindow] = (),
    ) -> PriceQuote:
        """Price a line.

        Args:
            list_price: Product list price per unit.
            quantity: Number of units, must be positive.
            as_of: Instant used to decide which promotions are active.
            promotions: Promotions linked to the product.

        Returns:
            PriceQuote with the unit price, discount and rounded line total.

        Raises:
            InvalidQuantityError: If quantity is not positive.
            ValidationError: If list_price is negative.
        """
        require_positive_quantity(quantity)
        unit_price = Decimal(list_price)
        if unit_price < 0:
            raise ValidationError("price", "must not be negative", str(unit_price))

        promotion = self.select_promotion(promotions, as_of)
        discount = promotion.discount_percentage if promotion else 0

        factor = (Decimal(100) - Decimal(discount)) / Decimal(100)
        # Round per unit so quantity x effective price is exactly the line total
        effective = to_currency(unit_price * factor)

        return PriceQuote(
            unit_price=to_currency(unit_price),
            discount_percent=discount,
            effective_unit_price=effective,
            line_total=to_currency(effective * quantity),
            promotion_id=promotion.promotion_id if promotion else None,
        )
