"""Customer support ticket service."""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.domain.exceptions import (
    OrderNotFoundError,
    TicketNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from marketplace.domain.state_machines import TicketStatus
from marketplace.domain.validation import require_text
from marketplace.infrastructure.database import get_session_factory
from marketplace.infrastructure.models import OrderModel, SupportTicketModel, UserModel
from marketplace.infrastructure.unit_of_work import UnitOfWork

logger = structlog.get_logger()

DESCRIPTION_MAX_LENGTH = 1000


class SupportService:
    """Opens and updates support tickets."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        request_id: str | None = None,
    ) -> None:
        self.session_factory = session_factory or get_session_factory()
        self.uow = UnitOfWork(self.session_factory)
        self.request_id = request_id

    async def open_ticket(
        self,
        user_id: int,
        description: str,
        order_id: int | None = None,
        status: str | None = None,
    ) -> SupportTicketModel:
        """Open a ticket, optionally about one of the user's orders.

        Args:
            user_id: Reporting user.
            description: Problem description.
            order_id: Order the ticket refers to.
            status: Initial status, defaults to Open.

        Returns:
            The created ticket.

        Raises:
            UserNotFoundError: If the user does not exist.
            OrderNotFoundError: If the order does not exist.
            ValidationError: If the description or status is invalid, or
                the order belongs to another user.
        """
        description = require_text("description", description, DESCRIPTION_MAX_LENGTH)
        ticket_status = TicketStatus.parse(status) if status else TicketStatus.OPEN

        async def work(session: AsyncSession) -> SupportTicketModel:
            if await session.get(UserModel, user_id) is None:
                raise UserNotFoundError(user_id)
            if order_id is not None:
                order = await session.get(OrderModel, order_id)
                if order is None:
                    raise OrderNotFoundError(order_id)
                if order.user_id != user_id:
                    raise ValidationError("order_id", "order belongs to another user", order_id)

            ticket = SupportTicketModel(
                user_id=user_id,
                order_id=order_id,
                description=description,
                status=ticket_status.value,
            )
            session.add(ticket)
            await session.flush()
            return ticket

        ticket = await self.uow.run("open_ticket", work)

        logger.info(
            "Support ticket opened",
            ticket_id=ticket.id,
            user_id=user_id,
            order_id=order_id,
            status=ticket.status,
            request_id=self.request_id,
        )
        return ticket

    async def update_status(self, ticket_id: int, status: str) -> SupportTicketModel:
        """Change a ticket's status.

        Raises:
            TicketNotFoundError: If the ticket does not exist.
            ValidationError: If the status is not recognised.
        """
        ticket_status = TicketStatus.parse(status)

        async def work(session: AsyncSession) -> tuple[SupportTicketModel, str]:
            ticket = await session.get(SupportTicketModel, ticket_id, with_for_update=True)
            if ticket is None:
                raise TicketNotFoundError(ticket_id)
            previous = ticket.status
            ticket.status = ticket_status.value
            await session.flush()
            return ticket, previous

        ticket, previous = await self.uow.run("update_ticket_status", work)

        logger.info(
            "Support ticket updated",
            ticket_id=ticket_id,
            from_status=previous,
            to_status=ticket.status,
            request_id=self.request_id,
        )
        return ticket


def get_support_service(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    request_id: str | None = None,
) -> SupportService:
    """Get support service instance."""
    return SupportService(session_factory=session_factory, request_id=request_id)
