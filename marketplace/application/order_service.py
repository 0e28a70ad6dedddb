"""Order application service.

Orchestrates the order lifecycle:
- Checking out a cart into an immutable, priced order
- Cancelling and reopening orders, moving stock with each transition
- Scheduling delivery the first time an order is placed
- Emitting audit events once each transaction has committed
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from marketplace.application.cart_service import load_cart, lock_user
from marketplace.application.catalog_service import load_promotion_windows
from marketplace.application.fulfillment_service import FulfillmentScheduler
from marketplace.application.inventory_service import InventoryLedger, line_quantities
from marketplace.domain.events import AuditedEntity, ChangeEvent
from marketplace.domain.exceptions import (
    CartNotFoundError,
    OrderNotFoundError,
    UserNotFoundError,
)
from marketplace.domain.pricing import PricingEngine
from marketplace.domain.state_machines import (
    OrderStatus,
    ShippingMethod,
    validate_order_transition,
)
from marketplace.domain.value_objects import CheckoutResult, LineSnapshot, to_currency
from marketplace.infrastructure.audit import AuditDispatcher, LogAuditSink
from marketplace.infrastructure.config import settings
from marketplace.infrastructure.database import get_session_factory
from marketplace.infrastructure.models import (
    OrderLineModel,
    OrderModel,
    OrderStatusHistoryModel,
    UserModel,
    utcnow,
)
from marketplace.infrastructure.unit_of_work import UnitOfWork

logger = structlog.get_logger()


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class OrderStatusChange:
    """Result of an order status transition."""

    order_id: int
    from_status: OrderStatus
    to_status: OrderStatus


def order_snapshot(order: OrderModel, status: str | None = None) -> dict[str, Any]:
    """Audit representation of an order row."""
    return {
        "id": order.id,
        "user_id": order.user_id,
        "total_price": str(order.total_price),
        "currency": order.currency,
        "status": status or order.status,
        "shipping_method": order.shipping_method,
        "order_date": order.order_date.isoformat(),
    }


# ============================================================================
# Order Ledger
# ============================================================================


class OrderLedger:
    """Transactional boundary for orders.

    Every side effect of a checkout or status change (stock movement,
    delivery scheduling, status history) happens in the same transaction
    as the order write. Audit events are published after commit.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        audit: AuditDispatcher | None = None,
        pricing: PricingEngine | None = None,
        inventory: InventoryLedger | None = None,
        fulfillment: FulfillmentScheduler | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session_factory: Session factory for units of work.
            audit: Dispatcher for change events.
            pricing: Engine used to freeze line prices.
            inventory: Ledger that moves stock.
            fulfillment: Scheduler for delivery records.
            request_id: Request ID for correlation.
        """
        self.session_factory = session_factory or get_session_factory()
        self.uow = UnitOfWork(self.session_factory)
        self.audit = audit or AuditDispatcher(LogAuditSink())
        self.pricing = pricing or PricingEngine()
        self.inventory = inventory or InventoryLedger(self.session_factory, request_id)
        self.fulfillment = fulfillment or FulfillmentScheduler(self.session_factory, request_id)
        self.request_id = request_id

    # ------------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------------

    async def checkout(
        self,
        user_id: int,
        shipping_method: str,
        actor: str = "system",
    ) -> CheckoutResult:
        """Turn a user's cart into a placed order.

        Args:
            user_id: Cart owner.
            shipping_method: Standard, Express or Same-Day.
            actor: Who placed the order, recorded in history and audit.

        Returns:
            CheckoutResult with the new order id and frozen total.

        Raises:
            InvalidShippingMethodError: If the method is not supported.
            CartNotFoundError: If the user has no cart or an empty one.
            InsufficientStockError: If any line cannot be covered.
        """
        method = ShippingMethod.parse(shipping_method)

        order, event = await self.uow.run(
            "checkout",
            lambda session: self._checkout(session, user_id, method, actor),
        )

        self.audit.publish([event])

        logger.info(
            "Order placed",
            order_id=order.id,
            user_id=user_id,
            total_price=str(order.total_price),
            shipping_method=method.value,
            line_count=len(order.lines),
            request_id=self.request_id,
        )
        return CheckoutResult(order_id=order.id, total=order.total_price)

    async def _checkout(
        self,
        session: AsyncSession,
        user_id: int,
        method: ShippingMethod,
        actor: str,
    ) -> tuple[OrderModel, ChangeEvent]:
        # Serializes with add_to_cart for the same user
        await lock_user(session, user_id)
        cart = await load_cart(session, user_id)
        if cart is None or not cart.lines:
            raise CartNotFoundError(user_id, f"No cart with items for user {user_id}")

        now = utcnow()
        quantities = {line.product_id: line.quantity for line in cart.lines}

        # Lock in ascending id order and re-check stock for every line
        products = await self.inventory.lock_products(session, quantities)
        self.inventory.check_available(products, quantities)

        promotions = await load_promotion_windows(session, quantities)
        snapshots = [
            LineSnapshot(
                product_id=line.product_id,
                quantity=line.quantity,
                quote=self.pricing.price(
                    products[line.product_id].price,
                    line.quantity,
                    now,
                    promotions[line.product_id],
                ),
            )
            for line in cart.lines
        ]
        total = to_currency(sum((s.quote.line_total for s in snapshots), Decimal("0")))

        order = OrderModel(
            user_id=user_id,
            total_price=total,
            currency=settings.currency,
            status=OrderStatus.PLACED.value,
            shipping_method=method.value,
            order_date=now,
            lines=[
                OrderLineModel(
                    product_id=s.product_id,
                    quantity=s.quantity,
                    list_price=s.quote.unit_price,
                    discount_percentage=s.quote.discount_percent,
                    unit_price=s.quote.effective_unit_price,
                    line_total=s.quote.line_total,
                    promotion_id=s.quote.promotion_id,
                )
                for s in snapshots
            ],
        )
        session.add(order)
        await session.flush()

        session.add(
            OrderStatusHistoryModel(
                order_id=order.id,
                from_status=None,
                to_status=OrderStatus.PLACED.value,
                actor=actor,
            )
        )
        await self.inventory.debit_lines(session, quantities)
        await self.fulfillment.on_status_change(session, order, previous_status=None, now=now)

        await session.delete(cart)
        await session.flush()

        event = ChangeEvent.inserted(
            AuditedEntity.ORDERS, order.id, after=order_snapshot(order), actor=actor
        )
        return order, event

    # ------------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------------

    async def cancel_order(self, order_id: int, actor: str = "system") -> OrderStatusChange:
        """Cancel a placed order and return its quantities to stock.

        Raises:
            OrderNotFoundError: If the order does not exist.
            InvalidStateTransitionError: If the order is not Placed.
        """
        return await self._transition_order(order_id, OrderStatus.CANCELLED, actor)

    async def reopen_order(self, order_id: int, actor: str = "system") -> OrderStatusChange:
        """Place a cancelled order again, debiting its quantities.

        Raises:
            OrderNotFoundError: If the order does not exist.
            InvalidStateTransitionError: If the order is not Cancelled.
            InsufficientStockError: If stock no longer covers the order.
        """
        return await self._transition_order(order_id, OrderStatus.PLACED, actor)

    async def _transition_order(
        self,
        order_id: int,
        target_status: OrderStatus,
        actor: str,
    ) -> OrderStatusChange:
        """Perform a status transition on an order.

        Args:
            order_id: Order identifier.
            target_status: Target status.
            actor: Who initiated the transition.

        Returns:
            OrderStatusChange describing the transition.
        """
        operation = "cancel_order" if target_status == OrderStatus.CANCELLED else "reopen_order"
        change, event = await self.uow.run(
            operation,
            lambda session: self._apply_transition(session, order_id, target_status, actor),
        )

        self.audit.publish([event])

        logger.info(
            "Order status transitioned",
            order_id=order_id,
            from_status=change.from_status.value,
            to_status=change.to_status.value,
            actor=actor,
            request_id=self.request_id,
        )
        return change

    async def _apply_transition(
        self,
        session: AsyncSession,
        order_id: int,
        target_status: OrderStatus,
        actor: str,
    ) -> tuple[OrderStatusChange, ChangeEvent]:
        order = await session.scalar(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .options(selectinload(OrderModel.lines))
            .with_for_update()
        )
        if order is None:
            raise OrderNotFoundError(order_id)

        current_status = OrderStatus(order.status)
        validate_order_transition(str(order_id), current_status, target_status)

        quantities = line_quantities(order.lines)
        if target_status.holds_stock():
            await self.inventory.debit_lines(session, quantities)
        else:
            await self.inventory.credit_lines(session, quantities)

        before = order_snapshot(order)
        order.status = target_status.value
        session.add(
            OrderStatusHistoryModel(
                order_id=order.id,
                from_status=current_status.value,
                to_status=target_status.value,
                actor=actor,
            )
        )
        await session.flush()
        await self.fulfillment.on_status_change(session, order, previous_status=current_status)

        event = ChangeEvent.updated(
            AuditedEntity.ORDERS,
            order.id,
            before=before,
            after=order_snapshot(order, status=target_status.value),
            actor=actor,
        )
        change = OrderStatusChange(
            order_id=order.id,
            from_status=current_status,
            to_status=target_status,
        )
        return change, event

    # ------------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------------

    async def get_order(self, order_id: int) -> OrderModel:
        """Get an order with its lines, delivery record and status history.

        Raises:
            OrderNotFoundError: If the order does not exist.
        """
        async with self.session_factory() as session:
            order = await session.scalar(
                select(OrderModel)
                .where(OrderModel.id == order_id)
                .options(
                    selectinload(OrderModel.lines),
                    selectinload(OrderModel.delivery),
                    selectinload(OrderModel.status_history),
                )
            )
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def list_orders(self, user_id: int) -> Sequence[OrderModel]:
        """List a user's orders, newest first.

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        async with self.session_factory() as session:
            if await session.get(UserModel, user_id) is None:
                raise UserNotFoundError(user_id)
            result = await session.scalars(
                select(OrderModel)
                .where(OrderModel.user_id == user_id)
                .options(selectinload(OrderModel.lines), selectinload(OrderModel.delivery))
                .order_by(OrderModel.order_date.desc(), OrderModel.id.desc())
            )
            return result.all()


# ============================================================================
# Service Factory
# ============================================================================


def get_order_service(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    audit: AuditDispatcher | None = None,
    request_id: str | None = None,
) -> OrderLedger:
    """Get order service instance.

    Args:
        session_factory: Session factory to use.
        audit: Dispatcher for change events.
        request_id: Request ID for correlation.

    Returns:
        OrderLedger instance.
    """
    return OrderLedger(session_factory=session_factory, audit=audit, request_id=request_id)
