"""Cart application service.

Owns each user's in-progress cart. Items are checked against a stock
snapshot when added; nothing is reserved until checkout.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from marketplace.domain.exceptions import UserNotFoundError
from marketplace.domain.value_objects import CartItemOutcome, CartItemRequest, RejectionReason
from marketplace.infrastructure.database import get_session_factory
from marketplace.infrastructure.models import CartLineModel, CartModel, ProductModel, UserModel
from marketplace.infrastructure.unit_of_work import UnitOfWork

logger = structlog.get_logger()


# ============================================================================
# Cart Data Transfer Objects
# ============================================================================


@dataclass
class CartLineDTO:
    """Cart line data transfer object."""

    product_id: int
    quantity: int


@dataclass
class CartDTO:
    """Cart data transfer object. cart_id is None until the first item is added."""

    user_id: int
    cart_id: int | None = None
    lines: list[CartLineDTO] = field(default_factory=list)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


async def lock_user(session: AsyncSession, user_id: int) -> UserModel | None:
    """Lock a user row until the transaction ends.

    Cart mutations and checkout take this lock first, so work on one
    user's cart runs one transaction at a time across every process
    sharing the database. SQLite ignores FOR UPDATE; there BEGIN IMMEDIATE
    already serializes writers.
    """
    return await session.scalar(
        select(UserModel).where(UserModel.id == user_id).with_for_update()
    )


async def load_cart(session: AsyncSession, user_id: int) -> CartModel | None:
    """Load a user's cart with its lines."""
    return await session.scalar(
        select(CartModel)
        .where(CartModel.user_id == user_id)
        .options(selectinload(CartModel.lines))
    )


# ============================================================================
# Cart Aggregator
# ============================================================================


class CartAggregator:
    """Application service for user carts.

    Mutations of one user's cart are serialized by a row lock on the user.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session_factory: Session factory for units of work.
            request_id: Request ID for correlation.
        """
        self.session_factory = session_factory or get_session_factory()
        self.uow = UnitOfWork(self.session_factory)
        self.request_id = request_id

    async def add_items(
        self,
        user_id: int,
        items: Sequence[CartItemRequest],
    ) -> list[CartItemOutcome]:
        """Add products to a user's cart.

        Each item is accepted or rejected on its own; rejected items never
        abort the rest of the batch. Accepted items are saved together.

        Args:
            user_id: Cart owner.
            items: Products and quantities to add.

        Returns:
            One outcome per requested item, in request order.

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        outcomes = await self.uow.run(
            "add_to_cart",
            lambda session: self._add_items(session, user_id, items),
        )

        logger.info(
            "Cart items processed",
            user_id=user_id,
            accepted=sum(1 for o in outcomes if o.accepted),
            rejected=sum(1 for o in outcomes if not o.accepted),
            request_id=self.request_id,
        )
        return outcomes

    async def _add_items(
        self,
        session: AsyncSession,
        user_id: int,
        items: Sequence[CartItemRequest],
    ) -> list[CartItemOutcome]:
        if await lock_user(session, user_id) is None:
            raise UserNotFoundError(user_id)

        cart = await load_cart(session, user_id)
        lines = {line.product_id: line for line in cart.lines} if cart else {}

        wanted = {item.product_id for item in items if item.quantity > 0}
        products = {
            product.id: product
            for product in await session.scalars(
                select(ProductModel).where(ProductModel.id.in_(wanted))
            )
        }

        outcomes: list[CartItemOutcome] = []
        for item in items:
            line = lines.get(item.product_id)
            in_cart = line.quantity if line else 0

            if item.quantity <= 0:
                outcomes.append(
                    CartItemOutcome.reject(item.product_id, RejectionReason.INVALID_QUANTITY, in_cart)
                )
                continue

            product = products.get(item.product_id)
            if product is None:
                outcomes.append(
                    CartItemOutcome.reject(item.product_id, RejectionReason.PRODUCT_NOT_FOUND)
                )
                continue

            if product.stock_quantity < in_cart + item.quantity:
                outcomes.append(
                    CartItemOutcome.reject(item.product_id, RejectionReason.INSUFFICIENT_STOCK, in_cart)
                )
                continue

            if cart is None:
                cart = CartModel(user_id=user_id, lines=[])
                session.add(cart)

            if line is None:
                line = CartLineModel(product_id=item.product_id, quantity=item.quantity)
                cart.lines.append(line)
                lines[item.product_id] = line
            else:
                line.quantity += item.quantity

            outcomes.append(CartItemOutcome.accept(item.product_id, line.quantity))

        await session.flush()
        return outcomes

    async def get_cart(self, user_id: int) -> CartDTO:
        """Get a user's cart, empty if none exists.

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        async with self.session_factory() as session:
            if await session.get(UserModel, user_id) is None:
                raise UserNotFoundError(user_id)
            cart = await load_cart(session, user_id)

        if cart is None:
            return CartDTO(user_id=user_id)
        return CartDTO(
            user_id=user_id,
            cart_id=cart.id,
            lines=[
                CartLineDTO(product_id=line.product_id, quantity=line.quantity)
                for line in cart.lines
            ],
        )


# ============================================================================
# Service Factory
# ============================================================================


def get_cart_service(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    request_id: str | None = None,
) -> CartAggregator:
    """Get cart service instance.

    Args:
        session_factory: Session factory to use.
        request_id: Request ID for correlation.

    Returns:
        CartAggregator instance.
    """
    return CartAggregator(session_factory=session_factory, request_id=request_id)
