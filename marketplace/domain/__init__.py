"""Domain layer - State machines, value objects, pricing, change events.

This module exports the core building blocks of the order engine:

- **State Machines**: Order status toggle, shipping methods, ticket status
- **Value Objects**: Immutable pricing and cart results
- **Pricing**: Promotion selection and line totals
- **Fulfillment**: Delivery dates and tracking identifiers
- **Exceptions**: Domain-specific errors and invariant violations
"""

# Domain Events
from marketplace.domain.events import AuditedEntity, ChangeAction, ChangeEvent

# Exceptions
from marketplace.domain.exceptions import (
    AuthenticationError,
    CartNotFoundError,
    ConcurrencyConflictError,
    ConflictError,
    DomainError,
    InsufficientStockError,
    IntegrityError,
    InvalidQuantityError,
    InvalidShippingMethodError,
    InvalidStateTransitionError,
    NotFoundError,
    OrderNotFoundError,
    ProductNotFoundError,
    TicketNotFoundError,
    UserNotFoundError,
    ValidationError,
)

# Fulfillment rules
from marketplace.domain.fulfillment import expected_delivery_date, generate_tracking_id

# Pricing
from marketplace.domain.pricing import PricingEngine

# State Machines
from marketplace.domain.state_machines import (
    DeliveryStatus,
    OrderStatus,
    ShippingMethod,
    TicketStatus,
    validate_order_transition,
)

# Value Objects
from marketplace.domain.value_objects import (
    CartItemOutcome,
    CartItemRequest,
    CheckoutResult,
    LineSnapshot,
    PriceQuote,
    PromotionWindow,
    RejectionReason,
    to_currency,
)

__all__ = [
    # Events
    "AuditedEntity",
    "ChangeAction",
    "ChangeEvent",
    # Exceptions
    "AuthenticationError",
    "CartNotFoundError",
    "ConcurrencyConflictError",
    "ConflictError",
    "DomainError",
    "InsufficientStockError",
    "IntegrityError",
    "InvalidQuantityError",
    "InvalidShippingMethodError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "OrderNotFoundError",
    "ProductNotFoundError",
    "TicketNotFoundError",
    "UserNotFoundError",
    "ValidationError",
    # Fulfillment
    "expected_delivery_date",
    "generate_tracking_id",
    # Pricing
    "PricingEngine",
    # State Machines
    "DeliveryStatus",
    "OrderStatus",
    "ShippingMethod",
    "TicketStatus",
    "validate_order_transition",
    # Value Objects
    "CartItemOutcome",
    "CartItemRequest",
    "CheckoutResult",
    "LineSnapshot",
    "PriceQuote",
    "PromotionWindow",
    "RejectionReason",
    "to_currency",
]
