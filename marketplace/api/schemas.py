"""API schemas for the marketplace API.

Pydantic models for request/response validation and serialization.
Money values are Decimals and serialize as strings.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from marketplace.domain.state_machines import (
    DeliveryStatus,
    OrderStatus,
    ShippingMethod,
    TicketStatus,
)
from marketplace.domain.value_objects import RejectionReason


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | list[Any] = Field(
        default_factory=dict, description="Additional error details"
    )
    request_id: str | None = Field(default=None, description="Request ID for correlation")


class PriceQuoteSchema(BaseModel):
    """Price of a quantity at a given instant."""

    list_price: Decimal = Field(..., description="List price per unit")
    discount_percentage: int = Field(..., description="Applied promotional discount")
    unit_price: Decimal = Field(..., description="Discounted price per unit")
    promotion_id: int | None = Field(default=None, description="Promotion supplying the discount")
    quantity: int = Field(default=1, description="Units priced")
    line_total: Decimal = Field(..., description="quantity x unit_price")
    quoted_at: datetime = Field(..., description="Instant the quote was computed")


# ============================================================================
# Cart Schemas
# ============================================================================


class CartItemSchema(BaseModel):
    """Product and quantity to add to a cart."""

    product_id: int = Field(..., description="Product to add")
    quantity: int = Field(..., description="Units to add, must be positive to be accepted")


class AddCartItemsRequest(BaseModel):
    """Request to add items to a cart."""

    items: list[CartItemSchema] = Field(..., min_length=1, description="Items to add")


class CartItemResultSchema(BaseModel):
    """Outcome of adding one item."""

    product_id: int
    accepted: bool
    reason: RejectionReason | None = None
    quantity_in_cart: int = Field(..., description="Line quantity after the call")


class AddCartItemsResponse(BaseModel):
    """Per-item outcomes of an add-to-cart call."""

    results: list[CartItemResultSchema]


class CartLineSchema(BaseModel):
    """Line in a cart."""

    product_id: int
    quantity: int


class CartResponse(BaseModel):
    """A user's cart."""

    user_id: int
    cart_id: int | None = Field(default=None, description="None when the user has no cart yet")
    lines: list[CartLineSchema] = Field(default_factory=list)
    item_count: int = 0


# ============================================================================
# Order Schemas
# ============================================================================


class CheckoutRequest(BaseModel):
    """Request to check out a user's cart."""

    user_id: int = Field(..., description="Cart owner")
    shipping_method: str = Field(
        ...,
        description="Shipping method",
        examples=[m.value for m in ShippingMethod],
    )


class CheckoutResponse(BaseModel):
    """Created order identifier and frozen total."""

    order_id: int
    total: Decimal


class OrderLineSchema(BaseModel):
    """Priced order line, frozen at checkout."""

    product_id: int
    quantity: int
    list_price: Decimal
    discount_percentage: int
    unit_price: Decimal
    line_total: Decimal
    promotion_id: int | None = None


class DeliveryRecordSchema(BaseModel):
    """Delivery tracking for an order."""

    order_id: int
    tracking_id: str
    expected_delivery_date: date
    actual_delivery_date: date | None = None
    status: DeliveryStatus


class OrderStatusHistorySchema(BaseModel):
    """Order status history entry."""

    from_status: OrderStatus | None = None
    to_status: OrderStatus
    actor: str | None = None
    created_at: datetime


class OrderResponse(BaseModel):
    """Order details."""

    id: int
    user_id: int
    status: OrderStatus
    shipping_method: ShippingMethod
    total_price: Decimal
    currency: str
    order_date: datetime
    lines: list[OrderLineSchema]
    delivery: DeliveryRecordSchema | None = None
    status_history: list[OrderStatusHistorySchema] = Field(default_factory=list)


class OrdersListResponse(BaseModel):
    """A user's orders, newest first."""

    items: list[OrderResponse]
    total: int


class OrderStatusResponse(BaseModel):
    """Result of a status transition."""

    order_id: int
    status: OrderStatus


class RecordDeliveryRequest(BaseModel):
    """Request to record the actual delivery date."""

    delivered_on: date = Field(..., description="Date the order was delivered")


# ============================================================================
# User Schemas
# ============================================================================


class RegisterUserRequest(BaseModel):
    """Request to register a user."""

    first_name: str = Field(..., max_length=50)
    last_name: str = Field(..., max_length=50)
    email: str = Field(..., max_length=256)
    username: str = Field(..., max_length=50)
    password: str = Field(..., min_length=1)
    mobile_number: str | None = Field(default=None, max_length=15)


class UserIdResponse(BaseModel):
    """Identifier of a registered or logged-in user."""

    user_id: int


class SellerIdResponse(BaseModel):
    """Identifier of a registered seller."""

    seller_id: int


class LoginRequest(BaseModel):
    """Login credentials."""

    username: str
    password: str


class ShippingAddressRequest(BaseModel):
    """Shipping address to save for a user."""

    street: str = Field(..., max_length=255)
    city: str = Field(..., max_length=100)
    state: str = Field(..., max_length=100)
    zip_code: str = Field(..., description="5 to 9 characters")
    country: str = Field(..., max_length=100)
    apartment_name: str | None = Field(default=None, max_length=100)
    region: str | None = Field(default=None, max_length=25)


class ShippingAddressResponse(BaseModel):
    """Identifier of a saved address."""

    address_id: int


# ============================================================================
# Support Schemas
# ============================================================================


class OpenTicketRequest(BaseModel):
    """Request to open a support ticket."""

    user_id: int
    description: str = Field(..., max_length=1000)
    order_id: int | None = None
    status: str | None = Field(default=None, examples=[s.value for s in TicketStatus])


class TicketIdResponse(BaseModel):
    """Identifier of an opened ticket."""

    ticket_id: int


class UpdateTicketRequest(BaseModel):
    """Request to change a ticket's status."""

    status: str = Field(..., examples=[s.value for s in TicketStatus])


class TicketResponse(BaseModel):
    """Support ticket."""

    id: int
    user_id: int
    order_id: int | None = None
    description: str
    status: TicketStatus
    created_on: datetime


# ============================================================================
# Catalogue Schemas
# ============================================================================


class CreateProductRequest(BaseModel):
    """Request to create a product."""

    name: str = Field(..., max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    price: Decimal = Field(..., ge=0, decimal_places=2)
    stock: int = Field(default=0, ge=0, description="Initial units on hand")
    category_id: int | None = Field(default=None, description="Category to file the product under")


class ProductResponse(BaseModel):
    """Product details."""

    id: int
    name: str
    description: str | None = None
    price: Decimal
    stock_quantity: int
    category_id: int | None = None
    category_name: str | None = None
    quote: PriceQuoteSchema | None = None


class UpdatePriceRequest(BaseModel):
    """Request to change a product's list price."""

    price: Decimal = Field(..., ge=0, decimal_places=2)


class StockAdjustmentRequest(BaseModel):
    """Signed stock change."""

    delta: int = Field(..., description="Positive to restock, negative to write off")


class StockAdjustmentResponse(BaseModel):
    """Stock level after an adjustment."""

    product_id: int
    stock: int


class CreatePromotionRequest(BaseModel):
    """Request to create a promotion."""

    discount_percentage: int = Field(..., ge=0, le=100)
    start_date: datetime
    end_date: datetime
    product_ids: list[int] = Field(default_factory=list)


class PromotionResponse(BaseModel):
    """Promotion details."""

    id: int
    discount_percentage: int
    start_date: datetime
    end_date: datetime
    product_ids: list[int]


class CreateCategoryRequest(BaseModel):
    """Request to create a product category."""

    name: str = Field(..., min_length=1, max_length=255)


class CategoryResponse(BaseModel):
    """Product category."""

    id: int
    name: str
