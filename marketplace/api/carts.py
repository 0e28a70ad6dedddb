"""Cart API endpoints.

Provides endpoints for building a cart before checkout:
- POST /carts/{user_id}/items - add items, reporting each outcome
- GET /carts/{user_id} - current cart contents
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from marketplace.api.dependencies import SessionFactory, get_request_id
from marketplace.api.schemas import (
    AddCartItemsRequest,
    AddCartItemsResponse,
    CartItemResultSchema,
    CartLineSchema,
    CartResponse,
    ErrorResponse,
)
from marketplace.application.cart_service import CartAggregator, get_cart_service
from marketplace.domain.value_objects import CartItemRequest

router = APIRouter(prefix="/carts", tags=["Carts"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request, session_factory: SessionFactory) -> CartAggregator:
    """Get cart service with request ID."""
    return get_cart_service(session_factory=session_factory, request_id=get_request_id(request))


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/{user_id}/items",
    response_model=AddCartItemsResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Add items to cart",
    description=(
        "Add products to a user's cart. Items are accepted or rejected one by one; "
        "a rejected item never blocks the others."
    ),
)
async def add_cart_items(
    user_id: int,
    body: AddCartItemsRequest,
    service: Annotated[CartAggregator, Depends(get_service)],
) -> AddCartItemsResponse:
    """Add items to a cart.

    Args:
        user_id: Cart owner.
        body: Items to add.
        service: Cart service.

    Returns:
        One result per requested item.
    """
    outcomes = await service.add_items(
        user_id,
        [CartItemRequest(product_id=item.product_id, quantity=item.quantity) for item in body.items],
    )
    return AddCartItemsResponse(
        results=[
            CartItemResultSchema(
                product_id=outcome.product_id,
                accepted=outcome.accepted,
                reason=outcome.reason,
                quantity_in_cart=outcome.quantity_in_cart,
            )
            for outcome in outcomes
        ]
    )


@router.get(
    "/{user_id}",
    response_model=CartResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get cart",
)
async def get_cart(
    user_id: int,
    service: Annotated[CartAggregator, Depends(get_service)],
) -> CartResponse:
    """Get a user's cart, empty when nothing has been added yet."""
    cart = await service.get_cart(user_id)
    return CartResponse(
        user_id=cart.user_id,
        cart_id=cart.cart_id,
        lines=[
            CartLineSchema(product_id=line.product_id, quantity=line.quantity)
            for line in cart.lines
        ],
        item_count=cart.item_count,
    )
