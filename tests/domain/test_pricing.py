"""Tests for line pricing and promotion windows."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from marketplace.domain.exceptions import InvalidQuantityError, ValidationError
from marketplace.domain.pricing import PricingEngine
from marketplace.domain.value_objects import PriceQuote, PromotionWindow, to_currency

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def window(promotion_id: int, discount: int, start_offset_days: int = -1, end_offset_days: int = 1):
    return PromotionWindow(
        promotion_id=promotion_id,
        discount_percentage=discount,
        start=NOW + timedelta(days=start_offset_days),
        end=NOW + timedelta(days=end_offset_days),
    )


class TestToCurrency:
    """Tests for currency rounding."""

    def test_rounds_half_to_even(self) -> None:
        """Ties round to the even cent."""
        assert to_currency(Decimal("5.025")) == Decimal("5.02")
        assert to_currency(Decimal("5.035")) == Decimal("5.04")

    def test_always_two_places(self) -> None:
        """Whole amounts keep two decimal places."""
        assert str(to_currency(7)) == "7.00"


class TestPromotionWindow:
    """Tests for PromotionWindow validation."""

    def test_discount_above_hundred_rejected(self) -> None:
        """Discounts over 100 percent are invalid."""
        with pytest.raises(ValidationError):
            window(1, 101)

    def test_negative_discount_rejected(self) -> None:
        """Negative discounts are invalid."""
        with pytest.raises(ValidationError):
            window(1, -5)

    def test_end_before_start_rejected(self) -> None:
        """A window cannot end before it starts."""
        with pytest.raises(ValidationError) as exc_info:
            window(1, 10, start_offset_days=2, end_offset_days=1)
        assert exc_info.value.field == "end_date"

    def test_bounds_are_inclusive(self) -> None:
        """The start and end instants are both inside the window."""
        promo = PromotionWindow(1, 10, start=NOW, end=NOW + timedelta(hours=1))
        assert promo.is_active(NOW)
        assert promo.is_active(NOW + timedelta(hours=1))
        assert not promo.is_active(NOW + timedelta(hours=1, microseconds=1))
        assert not promo.is_active(NOW - timedelta(microseconds=1))

    def test_naive_datetimes_treated_as_utc(self) -> None:
        """Naive bounds are interpreted as UTC."""
        promo = PromotionWindow(1, 10, start=datetime(2026, 3, 15), end=datetime(2026, 3, 16))
        assert promo.start.tzinfo is not None
        assert promo.is_active(NOW)


class TestPricingEngine:
    """Tests for PricingEngine."""

    @pytest.fixture
    def engine(self) -> PricingEngine:
        return PricingEngine()

    def test_no_promotion_uses_list_price(self, engine: PricingEngine) -> None:
        """Without promotions the line total is price times quantity."""
        quote = engine.price(Decimal("19.99"), 3, NOW)

        assert quote == PriceQuote(
            unit_price=Decimal("19.99"),
            discount_percent=0,
            effective_unit_price=Decimal("19.99"),
            line_total=Decimal("59.97"),
            promotion_id=None,
        )

    def test_active_promotion_applies(self, engine: PricingEngine) -> None:
        """An active promotion discounts the line."""
        quote = engine.price(Decimal("20.00"), 2, NOW, [window(7, 25)])

        assert quote.discount_percent == 25
        assert quote.promotion_id == 7
        assert quote.line_total == Decimal("30.00")
        assert quote.effective_unit_price == Decimal("15.00")

    def test_expired_promotion_ignored(self, engine: PricingEngine) -> None:
        """Promotions outside their window do not apply."""
        expired = window(1, 50, start_offset_days=-10, end_offset_days=-5)
        upcoming = window(2, 50, start_offset_days=5, end_offset_days=10)

        quote = engine.price(Decimal("10.00"), 1, NOW, [expired, upcoming])

        assert quote.discount_percent == 0
        assert quote.line_total == Decimal("10.00")

    def test_lowest_promotion_id_wins(self, engine: PricingEngine) -> None:
        """Overlapping promotions resolve to the lowest id, not the biggest discount."""
        quote = engine.price(Decimal("100.00"), 1, NOW, [window(9, 50), window(3, 10), window(5, 30)])

        assert quote.promotion_id == 3
        assert quote.line_total == Decimal("90.00")

    def test_half_even_rounding_of_line_total(self, engine: PricingEngine) -> None:
        """10.05 at 50% off is 5.025, which rounds to 5.02."""
        quote = engine.price(Decimal("10.05"), 1, NOW, [window(1, 50)])

        assert quote.line_total == Decimal("5.02")

    def test_full_discount_is_free(self, engine: PricingEngine) -> None:
        """A 100% promotion prices the line at zero."""
        quote = engine.price(Decimal("42.00"), 4, NOW, [window(1, 100)])

        assert quote.line_total == Decimal("0.00")

    def test_line_total_is_quantity_times_rounded_unit_price(self, engine: PricingEngine) -> None:
        """9.99 at 15% off is 8.4915 per unit, so 100 units cost 100 x 8.49."""
        quote = engine.price(Decimal("9.99"), 100, NOW, [window(1, 15)])

        assert quote.effective_unit_price == Decimal("8.49")
        assert quote.line_total == Decimal("849.00")
        assert quote.line_total == 100 * quote.effective_unit_price

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity_rejected(self, engine: PricingEngine, quantity: int) -> None:
        """Quantities must be positive."""
        with pytest.raises(InvalidQuantityError):
            engine.price(Decimal("10.00"), quantity, NOW)

    def test_negative_price_rejected(self, engine: PricingEngine) -> None:
        """List prices cannot be negative."""
        with pytest.raises(ValidationError) as exc_info:
            engine.price(Decimal("-1.00"), 1, NOW)
        assert exc_info.value.field == "price"

    def test_select_promotion_none_when_empty(self, engine: PricingEngine) -> None:
        """No promotions means nothing is selected."""
        assert engine.select_promotion([], NOW) is None
