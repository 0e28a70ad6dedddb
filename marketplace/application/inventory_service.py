"""Inventory application service.

The InventoryLedger is the only writer of product stock. Order flows
call it inside their own unit of work; catalogue administration uses
restock, which opens one of its own.
"""

from collections.abc import Iterable, Mapping

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.domain.exceptions import InsufficientStockError, ProductNotFoundError
from marketplace.infrastructure.database import get_session_factory
from marketplace.infrastructure.models import OrderLineModel, ProductModel
from marketplace.infrastructure.unit_of_work import UnitOfWork

logger = structlog.get_logger()


def line_quantities(lines: Iterable[OrderLineModel]) -> dict[int, int]:
    """Sum line quantities per product."""
    quantities: dict[int, int] = {}
    for line in lines:
        quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity
    return quantities


class InventoryLedger:
    """Atomic stock adjustments.

    Rows are always locked in ascending product id order so that
    concurrent multi-product transactions cannot deadlock.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize ledger.

        Args:
            session_factory: Session factory for standalone restocks.
            request_id: Request ID for correlation.
        """
        self.session_factory = session_factory or get_session_factory()
        self.request_id = request_id

    async def lock_products(
        self,
        session: AsyncSession,
        product_ids: Iterable[int],
    ) -> dict[int, ProductModel]:
        """Lock product rows for update.

        Args:
            session: Transactional session.
            product_ids: Products to lock.

        Returns:
            Locked products keyed by id.

        Raises:
            ProductNotFoundError: If any product does not exist.
        """
        ids = sorted(set(product_ids))
        result = await session.scalars(
            select(ProductModel)
            .where(ProductModel.id.in_(ids))
            .order_by(ProductModel.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        products = {product.id: product for product in result}
        for product_id in ids:
            if product_id not in products:
                raise ProductNotFoundError(product_id)
        return products

    @staticmethod
    def check_available(
        products: Mapping[int, ProductModel],
        quantities: Mapping[int, int],
    ) -> None:
        """Verify every product covers its requested quantity.

        Raises:
            InsufficientStockError: Listing every short product.
        """
        shortages = [
            {
                "product_id": product_id,
                "requested": quantity,
                "available": products[product_id].stock_quantity,
            }
            for product_id, quantity in sorted(quantities.items())
            if products[product_id].stock_quantity < quantity
        ]
        if shortages:
            raise InsufficientStockError(shortages)

    async def adjust(self, session: AsyncSession, product_id: int, delta: int) -> int:
        """Apply a signed stock change to one product.

        Args:
            session: Transactional session.
            product_id: Product to adjust.
            delta: Positive to credit, negative to debit.

        Returns:
            New stock quantity.

        Raises:
            ProductNotFoundError: If the product does not exist.
            InsufficientStockError: If the result would be negative.
        """
        products = await self.lock_products(session, [product_id])
        product = products[product_id]

        new_stock = product.stock_quantity + delta
        if new_stock < 0:
            raise InsufficientStockError(
                [
                    {
                        "product_id": product_id,
                        "requested": -delta,
                        "available": product.stock_quantity,
                    }
                ]
            )

        product.stock_quantity = new_stock
        await session.flush()

        logger.debug(
            "Stock adjusted",
            product_id=product_id,
            delta=delta,
            stock_quantity=new_stock,
            request_id=self.request_id,
        )
        return new_stock

    async def debit_lines(self, session: AsyncSession, quantities: Mapping[int, int]) -> dict[int, int]:
        """Remove quantities from stock, all or nothing.

        Returns:
            New stock per product.
        """
        products = await self.lock_products(session, quantities)
        self.check_available(products, quantities)
        return {
            product_id: await self.adjust(session, product_id, -quantity)
            for product_id, quantity in sorted(quantities.items())
        }

    async def credit_lines(self, session: AsyncSession, quantities: Mapping[int, int]) -> dict[int, int]:
        """Return quantities to stock.

        Returns:
            New stock per product.
        """
        await self.lock_products(session, quantities)
        return {
            product_id: await self.adjust(session, product_id, quantity)
            for product_id, quantity in sorted(quantities.items())
        }

    async def restock(self, product_id: int, delta: int) -> int:
        """Adjust one product's stock in its own transaction.

        Args:
            product_id: Product to adjust.
            delta: Signed change in units.

        Returns:
            New stock quantity.
        """
        new_stock = await UnitOfWork(self.session_factory).run(
            "restock",
            lambda session: self.adjust(session, product_id, delta),
        )
        logger.info(
            "Product restocked",
            product_id=product_id,
            delta=delta,
            stock_quantity=new_stock,
            request_id=self.request_id,
        )
        return new_stock


def get_inventory_ledger(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    request_id: str | None = None,
) -> InventoryLedger:
    """Get inventory ledger instance.

    Args:
        session_factory: Session factory to use.
        request_id: Request ID for correlation.

    Returns:
        InventoryLedger instance.
    """
    return InventoryLedger(session_factory=session_factory, request_id=request_id)
