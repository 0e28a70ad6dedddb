"""Fulfillment application service.

Creates the delivery record when an order first reaches Placed and
records actual delivery dates.
"""

from datetime import date, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.domain.exceptions import ConflictError, OrderNotFoundError, ValidationError
from marketplace.domain.fulfillment import expected_delivery_date, generate_tracking_id
from marketplace.domain.state_machines import DeliveryStatus, OrderStatus
from marketplace.infrastructure.database import get_session_factory
from marketplace.infrastructure.models import DeliveryRecordModel, OrderModel, utcnow
from marketplace.infrastructure.unit_of_work import UnitOfWork

logger = structlog.get_logger()


class FulfillmentScheduler:
    """Derives delivery tracking for placed orders.

    A delivery record is created at most once per order. Reopening an
    order that already has one leaves it untouched.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        request_id: str | None = None,
    ) -> None:
        self.session_factory = session_factory or get_session_factory()
        self.request_id = request_id

    async def on_status_change(
        self,
        session: AsyncSession,
        order: OrderModel,
        previous_status: OrderStatus | None,
        now: datetime | None = None,
    ) -> DeliveryRecordModel | None:
        """React to an order status change inside the caller's transaction.

        Args:
            session: Transactional session of the status change.
            order: Order after the change, already flushed.
            previous_status: Status before the change, None for a new order.
            now: Generation instant for the tracking id.

        Returns:
            The new delivery record, or None if nothing was created.
        """
        if order.status != OrderStatus.PLACED.value or previous_status == OrderStatus.PLACED:
            return None

        existing = await session.scalar(
            select(DeliveryRecordModel.id).where(DeliveryRecordModel.order_id == order.id)
        )
        if existing is not None:
            return None

        generated_at = now or utcnow()
        record = DeliveryRecordModel(
            order_id=order.id,
            tracking_id=generate_tracking_id(order.id, generated_at),
            expected_delivery_date=expected_delivery_date(order.order_date, order.shipping_method),
            status=DeliveryStatus.PROCESSING.value,
        )
        session.add(record)
        await session.flush()

        logger.info(
            "Delivery scheduled",
            order_id=order.id,
            tracking_id=record.tracking_id,
            expected_delivery_date=record.expected_delivery_date.isoformat(),
            request_id=self.request_id,
        )
        return record

    async def record_delivery(self, order_id: int, delivered_on: date) -> DeliveryRecordModel:
        """Mark an order as delivered.

        Args:
            order_id: Delivered order.
            delivered_on: Actual delivery date.

        Returns:
            Updated delivery record.

        Raises:
            OrderNotFoundError: If the order has no delivery record.
            ConflictError: If the order is cancelled.
            ValidationError: If delivered_on precedes the expected date.
        """

        async def work(session: AsyncSession) -> DeliveryRecordModel:
            row = (
                await session.execute(
                    select(DeliveryRecordModel, OrderModel.status)
                    .join(OrderModel, OrderModel.id == DeliveryRecordModel.order_id)
                    .where(DeliveryRecordModel.order_id == order_id)
                    .with_for_update()
                )
            ).first()
            if row is None:
                raise OrderNotFoundError(order_id)
            record, order_status = row

            if order_status != OrderStatus.PLACED.value:
                raise ConflictError(
                    f"Cannot record delivery for order {order_id} in status {order_status}",
                    details={"order_id": order_id, "status": order_status},
                )
            if delivered_on < record.expected_delivery_date:
                raise ValidationError(
                    "delivered_on",
                    f"must not be before expected delivery date {record.expected_delivery_date.isoformat()}",
                    delivered_on.isoformat(),
                )

            record.actual_delivery_date = delivered_on
            record.status = DeliveryStatus.DELIVERED.value
            await session.flush()
            return record

        record = await UnitOfWork(self.session_factory).run("record_delivery", work)

        logger.info(
            "Delivery recorded",
            order_id=order_id,
            tracking_id=record.tracking_id,
            actual_delivery_date=delivered_on.isoformat(),
            request_id=self.request_id,
        )
        return record
