"""Order API endpoints.

Provides endpoints for order lifecycle management:
- POST /orders/checkout - turn a cart into an order
- GET /orders/{id} - order details, delivery and status history
- POST /orders/{id}/cancel - cancel a placed order
- POST /orders/{id}/reopen - place a cancelled order again
- POST /orders/{id}/delivery - record the actual delivery date
- GET /users/{id}/orders - a user's orders
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from marketplace.api.dependencies import Actor, Audit, SessionFactory, get_request_id
from marketplace.api.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    DeliveryRecordSchema,
    ErrorResponse,
    OrderLineSchema,
    OrderResponse,
    OrdersListResponse,
    OrderStatusHistorySchema,
    OrderStatusResponse,
    RecordDeliveryRequest,
)
from marketplace.application.fulfillment_service import FulfillmentScheduler
from marketplace.application.order_service import OrderLedger, get_order_service
from marketplace.infrastructure.models import DeliveryRecordModel, OrderModel

router = APIRouter(prefix="/orders", tags=["Orders"])
user_orders_router = APIRouter(prefix="/users", tags=["Orders"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request, session_factory: SessionFactory, audit: Audit) -> OrderLedger:
    """Get order service with request ID."""
    return get_order_service(
        session_factory=session_factory,
        audit=audit,
        request_id=get_request_id(request),
    )


def get_scheduler(request: Request, session_factory: SessionFactory) -> FulfillmentScheduler:
    """Get fulfillment scheduler with request ID."""
    return FulfillmentScheduler(session_factory=session_factory, request_id=get_request_id(request))


# ============================================================================
# Converters
# ============================================================================


def delivery_to_response(record: DeliveryRecordModel) -> DeliveryRecordSchema:
    """Convert DeliveryRecordModel to DeliveryRecordSchema."""
    return DeliveryRecordSchema(
        order_id=record.order_id,
        tracking_id=record.tracking_id,
        expected_delivery_date=record.expected_delivery_date,
        actual_delivery_date=record.actual_delivery_date,
        status=record.status,
    )


def order_to_response(order: OrderModel, include_history: bool = True) -> OrderResponse:
    """Convert OrderModel to OrderResponse."""
    lines = [
        OrderLineSchema(
            product_id=line.product_id,
            quantity=line.quantity,
            list_price=line.list_price,
            discount_percentage=line.discount_percentage,
            unit_price=line.unit_price,
            line_total=line.line_total,
            promotion_id=line.promotion_id,
        )
        for line in order.lines
    ]

    status_history = []
    if include_history:
        status_history = [
            OrderStatusHistorySchema(
                from_status=entry.from_status,
                to_status=entry.to_status,
                actor=entry.actor,
                created_at=entry.created_at,
            )
            for entry in order.status_history
        ]

    return OrderResponse(
        id=order.id,
        user_id=order.user_id,
        status=order.status,
        shipping_method=order.shipping_method,
        total_price=order.total_price,
        currency=order.currency,
        order_date=order.order_date,
        lines=lines,
        delivery=delivery_to_response(order.delivery) if order.delivery else None,
        status_history=status_history,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Checkout cart",
    description=(
        "Price the user's cart, debit stock, schedule delivery and clear the cart "
        "in one transaction."
    ),
)
async def checkout(
    body: CheckoutRequest,
    service: Annotated[OrderLedger, Depends(get_service)],
    actor: Actor,
) -> CheckoutResponse:
    """Check out a cart.

    Args:
        body: Cart owner and shipping method.
        service: Order service.
        actor: Caller recorded in history and audit.

    Returns:
        New order id and its frozen total.
    """
    result = await service.checkout(body.user_id, body.shipping_method, actor=actor)
    return CheckoutResponse(order_id=result.order_id, total=result.total)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get order details",
)
async def get_order(
    order_id: int,
    service: Annotated[OrderLedger, Depends(get_service)],
) -> OrderResponse:
    """Get an order with its lines, delivery record and status history."""
    order = await service.get_order(order_id)
    return order_to_response(order)


@router.post(
    "/{order_id}/cancel",
    response_model=OrderStatusResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Cancel order",
    description="Cancel a placed order and return its quantities to stock.",
)
async def cancel_order(
    order_id: int,
    service: Annotated[OrderLedger, Depends(get_service)],
    actor: Actor,
) -> OrderStatusResponse:
    """Cancel an order."""
    change = await service.cancel_order(order_id, actor=actor)
    return OrderStatusResponse(order_id=change.order_id, status=change.to_status)


@router.post(
    "/{order_id}/reopen",
    response_model=OrderStatusResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Reopen order",
    description="Place a cancelled order again. Fails if stock no longer covers it.",
)
async def reopen_order(
    order_id: int,
    service: Annotated[OrderLedger, Depends(get_service)],
    actor: Actor,
) -> OrderStatusResponse:
    """Reopen a cancelled order."""
    change = await service.reopen_order(order_id, actor=actor)
    return OrderStatusResponse(order_id=change.order_id, status=change.to_status)


@router.post(
    "/{order_id}/delivery",
    response_model=DeliveryRecordSchema,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Record delivery",
)
async def record_delivery(
    order_id: int,
    body: RecordDeliveryRequest,
    scheduler: Annotated[FulfillmentScheduler, Depends(get_scheduler)],
) -> DeliveryRecordSchema:
    """Record the date an order was delivered."""
    record = await scheduler.record_delivery(order_id, body.delivered_on)
    return delivery_to_response(record)


@user_orders_router.get(
    "/{user_id}/orders",
    response_model=OrdersListResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="List user orders",
)
async def list_user_orders(
    user_id: int,
    service: Annotated[OrderLedger, Depends(get_service)],
) -> OrdersListResponse:
    """List a user's orders, newest first."""
    orders = await service.list_orders(user_id)
    items = [order_to_response(order, include_history=False) for order in orders]
    return OrdersListResponse(items=items, total=len(items))
