"""Tests for support tickets."""

import pytest

from marketplace.application.cart_service import CartAggregator
from marketplace.application.order_service import OrderLedger
from marketplace.application.support_service import SupportService
from marketplace.domain.exceptions import (
    OrderNotFoundError,
    TicketNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from marketplace.domain.state_machines import TicketStatus
from marketplace.domain.value_objects import CartItemRequest


@pytest.fixture
def support(session_factory) -> SupportService:
    return SupportService(session_factory=session_factory)


async def place_order(session_factory, seed, user_id: int) -> int:
    product_id = await seed.product(stock=5)
    await CartAggregator(session_factory).add_items(user_id, [CartItemRequest(product_id, 1)])
    result = await OrderLedger(session_factory).checkout(user_id, "Standard")
    return result.order_id


class TestOpenTicket:
    """Tests for SupportService.open_ticket."""

    async def test_defaults_to_open(self, support, seed) -> None:
        user_id = await seed.user()

        ticket = await support.open_ticket(user_id, "Where is my parcel?")

        assert ticket.status == TicketStatus.OPEN.value
        assert ticket.order_id is None
        assert ticket.created_on is not None

    async def test_about_own_order(self, support, seed, session_factory) -> None:
        user_id = await seed.user()
        order_id = await place_order(session_factory, seed, user_id)

        ticket = await support.open_ticket(user_id, "Damaged box", order_id=order_id, status="Pending")

        assert ticket.order_id == order_id
        assert ticket.status == TicketStatus.PENDING.value

    async def test_order_of_another_user(self, support, seed, session_factory) -> None:
        """Tickets can only reference the reporter's own orders."""
        owner = await seed.user()
        stranger = await seed.user()
        order_id = await place_order(session_factory, seed, owner)

        with pytest.raises(ValidationError) as exc_info:
            await support.open_ticket(stranger, "Not mine", order_id=order_id)

        assert exc_info.value.field == "order_id"

    async def test_unknown_order(self, support, seed) -> None:
        user_id = await seed.user()

        with pytest.raises(OrderNotFoundError):
            await support.open_ticket(user_id, "Lost", order_id=404)

    async def test_unknown_user(self, support) -> None:
        with pytest.raises(UserNotFoundError):
            await support.open_ticket(404, "Hello")

    async def test_blank_description(self, support, seed) -> None:
        user_id = await seed.user()

        with pytest.raises(ValidationError):
            await support.open_ticket(user_id, "   ")

    async def test_unknown_status(self, support, seed) -> None:
        user_id = await seed.user()

        with pytest.raises(ValidationError):
            await support.open_ticket(user_id, "Hello", status="Escalated")


class TestUpdateStatus:
    """Tests for SupportService.update_status."""

    async def test_close_ticket(self, support, seed) -> None:
        user_id = await seed.user()
        ticket = await support.open_ticket(user_id, "Refund please")

        updated = await support.update_status(ticket.id, "Closed")

        assert updated.status == TicketStatus.CLOSED.value

    async def test_unknown_ticket(self, support) -> None:
        with pytest.raises(TicketNotFoundError):
            await support.update_status(404, "Closed")
