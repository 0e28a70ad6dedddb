"""Catalogue application service.

Handles product administration and promotions:
- Creating products with an initial stock level
- Changing list prices (audited)
- Creating categories and filing products under them
- Creating promotions and linking them to products
- Quoting the current price of a product
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from marketplace.application.inventory_service import InventoryLedger
from marketplace.domain.events import AuditedEntity, ChangeEvent
from marketplace.domain.exceptions import (
    CategoryNotFoundError,
    IntegrityError,
    ProductNotFoundError,
    ValidationError,
)
from marketplace.domain.pricing import PricingEngine
from marketplace.domain.validation import require_text
from marketplace.domain.value_objects import PriceQuote, PromotionWindow, to_currency
from marketplace.infrastructure.audit import AuditDispatcher, LogAuditSink
from marketplace.infrastructure.database import get_session_factory
from marketplace.infrastructure.models import (
    CategoryModel,
    ProductModel,
    PromotionModel,
    product_promotions,
    utcnow,
)
from marketplace.infrastructure.unit_of_work import UnitOfWork

logger = structlog.get_logger()

PRODUCT_NAME_MAX_LENGTH = 100
PRODUCT_DESCRIPTION_MAX_LENGTH = 1000
CATEGORY_NAME_MAX_LENGTH = 255


# ============================================================================
# Helpers
# ============================================================================


def promotion_window(promotion: PromotionModel) -> PromotionWindow:
    """Convert a promotion row to its pricing window."""
    return PromotionWindow(
        promotion_id=promotion.id,
        discount_percentage=promotion.discount_percentage,
        start=promotion.start_date,
        end=promotion.end_date,
    )


async def load_promotion_windows(
    session: AsyncSession,
    product_ids: Iterable[int],
) -> dict[int, list[PromotionWindow]]:
    """Load the promotions linked to each product.

    Args:
        session: Active session.
        product_ids: Products to load promotions for.

    Returns:
        Promotion windows keyed by product id, products without
        promotions map to an empty list.
    """
    ids = sorted(set(product_ids))
    windows: dict[int, list[PromotionWindow]] = {product_id: [] for product_id in ids}
    rows = await session.execute(
        select(product_promotions.c.product_id, PromotionModel)
        .join(PromotionModel, PromotionModel.id == product_promotions.c.promotion_id)
        .where(product_promotions.c.product_id.in_(ids))
        .order_by(PromotionModel.id)
    )
    for product_id, promotion in rows:
        windows[product_id].append(promotion_window(promotion))
    return windows


def _validate_price(price: Decimal) -> Decimal:
    if price < 0:
        raise ValidationError("price", "must not be negative", str(price))
    return to_currency(price)


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class ProductView:
    """Product with a quantity of it priced at a given instant."""

    product: ProductModel
    quote: PriceQuote
    quoted_at: datetime
    quantity: int = 1


# ============================================================================
# Catalog Service
# ============================================================================


class CatalogService:
    """Application service for products and promotions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        audit: AuditDispatcher | None = None,
        inventory: InventoryLedger | None = None,
        pricing: PricingEngine | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session_factory: Session factory for units of work.
            audit: Dispatcher for change events.
            inventory: Ledger used to set initial stock.
            pricing: Engine used for quotes.
            request_id: Request ID for correlation.
        """
        self.session_factory = session_factory or get_session_factory()
        self.uow = UnitOfWork(self.session_factory)
        self.audit = audit or AuditDispatcher(LogAuditSink())
        self.inventory = inventory or InventoryLedger(self.session_factory, request_id)
        self.pricing = pricing or PricingEngine()
        self.request_id = request_id

    async def create_product(
        self,
        name: str,
        price: Decimal,
        stock_quantity: int = 0,
        description: str | None = None,
        category_id: int | None = None,
    ) -> ProductModel:
        """Create a product.

        Initial stock is credited through the inventory ledger in the
        same transaction as the insert.

        Args:
            name: Product name.
            price: List price, non-negative.
            stock_quantity: Units on hand, non-negative.
            description: Optional description.
            category_id: Optional category to file the product under.

        Returns:
            The created product, with its category loaded.

        Raises:
            ValidationError: If any field is invalid.
            CategoryNotFoundError: If category_id does not exist.
        """
        name = require_text("name", name, PRODUCT_NAME_MAX_LENGTH)
        price = _validate_price(price)
        if stock_quantity < 0:
            raise ValidationError("stock_quantity", "must not be negative", stock_quantity)
        if description is not None and len(description) > PRODUCT_DESCRIPTION_MAX_LENGTH:
            raise ValidationError(
                "description",
                f"must be at most {PRODUCT_DESCRIPTION_MAX_LENGTH} characters",
                description,
            )

        async def work(session: AsyncSession) -> ProductModel:
            category = None
            if category_id is not None:
                category = await session.get(CategoryModel, category_id)
                if category is None:
                    raise CategoryNotFoundError(category_id)
            product = ProductModel(
                name=name,
                description=description,
                price=price,
                stock_quantity=0,
                category=category,
            )
            session.add(product)
            await session.flush()
            if stock_quantity:
                await self.inventory.adjust(session, product.id, stock_quantity)
            return product

        product = await self.uow.run("create_product", work)

        logger.info(
            "Product created",
            product_id=product.id,
            price=str(product.price),
            stock_quantity=product.stock_quantity,
            request_id=self.request_id,
        )
        return product

    async def get_product(
        self,
        product_id: int,
        quantity: int = 1,
        as_of: datetime | None = None,
    ) -> ProductView:
        """Get a product with a quote for quantity units at as_of, defaulting to now.

        Raises:
            ProductNotFoundError: If the product does not exist.
            InvalidQuantityError: If quantity is not positive.
        """
        as_of = as_of or utcnow()
        async with self.session_factory() as session:
            product = await session.scalar(
                select(ProductModel)
                .where(ProductModel.id == product_id)
                .options(selectinload(ProductModel.promotions), selectinload(ProductModel.category))
            )
            if product is None:
                raise ProductNotFoundError(product_id)

        quote = self.pricing.price(
            product.price,
            quantity,
            as_of,
            [promotion_window(p) for p in product.promotions],
        )
        return ProductView(product=product, quote=quote, quoted_at=as_of, quantity=quantity)

    async def create_category(self, name: str) -> CategoryModel:
        """Create a product category.

        Raises:
            ValidationError: If the name is empty or too long.
            IntegrityError: If the name is taken.
        """
        name = require_text("name", name, CATEGORY_NAME_MAX_LENGTH)

        async def work(session: AsyncSession) -> CategoryModel:
            if await session.scalar(select(CategoryModel.id).where(CategoryModel.name == name)):
                raise IntegrityError("name", name)
            category = CategoryModel(name=name)
            session.add(category)
            await session.flush()
            return category

        category = await self.uow.run("create_category", work)

        logger.info("Category created", category_id=category.id, name=name, request_id=self.request_id)
        return category

    async def update_price(
        self,
        product_id: int,
        price: Decimal,
        actor: str = "system",
    ) -> ProductModel:
        """Change a product's list price.

        Existing orders keep the prices frozen at their checkout.

        Raises:
            ProductNotFoundError: If the product does not exist.
            ValidationError: If the price is negative.
        """
        price = _validate_price(price)

        async def work(session: AsyncSession) -> tuple[ProductModel, Decimal]:
            product = await session.get(
                ProductModel,
                product_id,
                options=[selectinload(ProductModel.category)],
                with_for_update=True,
            )
            if product is None:
                raise ProductNotFoundError(product_id)
            previous = product.price
            product.price = price
            await session.flush()
            return product, previous

        product, previous = await self.uow.run("update_price", work)

        if to_currency(previous) != price:
            self.audit.publish(
                [
                    ChangeEvent.updated(
                        AuditedEntity.PRODUCTS,
                        product.id,
                        before={"price": str(to_currency(previous))},
                        after={"price": str(price)},
                        actor=actor,
                    )
                ]
            )

        logger.info(
            "Product price updated",
            product_id=product.id,
            old_price=str(previous),
            new_price=str(price),
            request_id=self.request_id,
        )
        return product

    async def create_promotion(
        self,
        discount_percentage: int,
        start_date: datetime,
        end_date: datetime,
        product_ids: Sequence[int] = (),
    ) -> PromotionModel:
        """Create a promotion and link it to products.

        Raises:
            ValidationError: If the discount or window is invalid.
            ProductNotFoundError: If a linked product does not exist.
        """
        # Validates discount range and window ordering
        window = PromotionWindow(0, discount_percentage, start_date, end_date)

        async def work(session: AsyncSession) -> PromotionModel:
            ids = sorted(set(product_ids))
            products = list(
                await session.scalars(select(ProductModel).where(ProductModel.id.in_(ids)))
            )
            found = {product.id for product in products}
            for product_id in ids:
                if product_id not in found:
                    raise ProductNotFoundError(product_id)

            promotion = PromotionModel(
                discount_percentage=window.discount_percentage,
                start_date=window.start,
                end_date=window.end,
                products=products,
            )
            session.add(promotion)
            await session.flush()
            return promotion

        promotion = await self.uow.run("create_promotion", work)

        logger.info(
            "Promotion created",
            promotion_id=promotion.id,
            discount_percentage=promotion.discount_percentage,
            product_ids=sorted(p.id for p in promotion.products),
            request_id=self.request_id,
        )
        return promotion


# ============================================================================
# Service Factory
# ============================================================================


def get_catalog_service(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    audit: AuditDispatcher | None = None,
    request_id: str | None = None,
) -> CatalogService:
    """Get catalog service instance.

    Args:
        session_factory: Session factory to use.
        audit: Dispatcher for change events.
        request_id: Request ID for correlation.

    Returns:
        CatalogService instance.
    """
    return CatalogService(session_factory=session_factory, audit=audit, request_id=request_id)
