"""Tests for catalogue administration and quotes."""

from datetime import timedelta
from decimal import Decimal

import pytest

from marketplace.application.catalog_service import CatalogService
from marketplace.domain.exceptions import (
    CategoryNotFoundError,
    IntegrityError,
    ProductNotFoundError,
    ValidationError,
)
from marketplace.infrastructure.models import ProductModel, utcnow


@pytest.fixture
def catalog(session_factory, audit) -> CatalogService:
    return CatalogService(session_factory=session_factory, audit=audit)


class TestCreateProduct:
    """Tests for CatalogService.create_product."""

    async def test_initial_stock(self, catalog, seed) -> None:
        product = await catalog.create_product("Desk lamp", Decimal("24.999"), stock_quantity=7)

        assert product.price == Decimal("25.00")
        assert product.stock_quantity == 7
        assert await seed.stock(product.id) == 7

    @pytest.mark.parametrize(
        ("name", "price", "stock"),
        [("", Decimal("1.00"), 0), ("Lamp", Decimal("-0.01"), 0), ("Lamp", Decimal("1.00"), -1)],
    )
    async def test_invalid_fields(self, catalog, name, price, stock) -> None:
        with pytest.raises(ValidationError):
            await catalog.create_product(name, price, stock_quantity=stock)


class TestQuotes:
    """Tests for the quotes returned by get_product."""

    async def test_quote_with_active_promotion(self, catalog, seed) -> None:
        product_id = await seed.product(price="80.00")
        now = utcnow()
        promotion_id = await seed.promotion(
            [product_id], 25, start=now - timedelta(days=1), end=now + timedelta(days=1)
        )

        view = await catalog.get_product(product_id)

        assert view.quote.promotion_id == promotion_id
        assert view.quote.effective_unit_price == Decimal("60.00")

    async def test_quote_at_instant(self, catalog, seed) -> None:
        """Quotes honour the requested instant, not just the present."""
        product_id = await seed.product(price="10.00")
        now = utcnow()
        await seed.promotion([product_id], 50, start=now + timedelta(days=2), end=now + timedelta(days=3))

        today = await catalog.get_product(product_id, quantity=3)
        later = await catalog.get_product(product_id, quantity=3, as_of=now + timedelta(days=2, hours=1))

        assert today.quote.line_total == Decimal("30.00")
        assert later.quote.line_total == Decimal("15.00")
        assert later.quantity == 3

    async def test_unknown_product(self, catalog) -> None:
        with pytest.raises(ProductNotFoundError):
            await catalog.get_product(31337)


class TestPromotions:
    """Tests for CatalogService.create_promotion."""

    async def test_links_products(self, catalog, seed) -> None:
        first = await seed.product()
        second = await seed.product()
        now = utcnow()

        promotion = await catalog.create_promotion(15, now, now + timedelta(days=7), [second, first])

        assert sorted(p.id for p in promotion.products) == [first, second]
        assert promotion.discount_percentage == 15

    async def test_unknown_product(self, catalog, seed) -> None:
        now = utcnow()

        with pytest.raises(ProductNotFoundError):
            await catalog.create_promotion(15, now, now + timedelta(days=7), [999])

    async def test_inverted_window(self, catalog) -> None:
        now = utcnow()

        with pytest.raises(ValidationError):
            await catalog.create_promotion(15, now, now - timedelta(seconds=1))


class TestUpdatePrice:
    """Tests for CatalogService.update_price."""

    async def test_updates_price(self, catalog, seed) -> None:
        product_id = await seed.product(price="3.00")

        product = await catalog.update_price(product_id, Decimal("4.50"))

        assert product.price == Decimal("4.50")
        view = await catalog.get_product(product_id)
        assert view.product.price == Decimal("4.50")

    async def test_unknown_product(self, catalog) -> None:
        with pytest.raises(ProductNotFoundError):
            await catalog.update_price(404, Decimal("1.00"))


class TestCategories:
    """Tests for categories and filing products under them."""

    async def test_product_in_category(self, catalog) -> None:
        category = await catalog.create_category("Kitchen")

        product = await catalog.create_product("Kettle", Decimal("30.00"), category_id=category.id)

        assert product.category_id == category.id
        view = await catalog.get_product(product.id)
        assert view.product.category.name == "Kitchen"

    async def test_uncategorised_product(self, catalog) -> None:
        product = await catalog.create_product("Kettle", Decimal("30.00"))

        view = await catalog.get_product(product.id)
        assert view.product.category_id is None
        assert view.product.category is None

    async def test_unknown_category(self, catalog, seed) -> None:
        """Nothing is created when the category does not exist."""
        with pytest.raises(CategoryNotFoundError):
            await catalog.create_product("Kettle", Decimal("30.00"), category_id=77)

        assert await seed.count(ProductModel) == 0

    async def test_duplicate_name(self, catalog) -> None:
        await catalog.create_category("Garden")

        with pytest.raises(IntegrityError) as exc_info:
            await catalog.create_category("Garden")

        assert exc_info.value.field == "name"

    async def test_blank_name(self, catalog) -> None:
        with pytest.raises(ValidationError):
            await catalog.create_category("  ")
