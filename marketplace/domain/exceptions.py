"""Domain exceptions.

All domain-level errors that represent business rule violations.
Each error carries a machine-readable error_code that the API layer
maps to an HTTP status.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Validation Errors
# ============================================================================


class ValidationError(DomainError):
    """Raised when input fails a business rule before any mutation."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str, value: Any = None) -> None:
        """Initialize validation error.

        Args:
            field: Name of the offending field.
            message: Explanation of the failure.
            value: The rejected value.
        """
        super().__init__(
            f"Invalid {field}: {message}",
            details={"field": field, "value": value, "reason": message},
        )
        self.field = field


class InvalidQuantityError(ValidationError):
    """Raised when an invalid quantity is provided."""

    error_code = "INVALID_QUANTITY"

    def __init__(self, quantity: int, reason: str = "Quantity must be positive") -> None:
        """Initialize invalid quantity error.

        Args:
            quantity: The invalid quantity value.
            reason: Explanation of why the quantity is invalid.
        """
        super().__init__("quantity", reason, quantity)


class InvalidShippingMethodError(ValidationError):
    """Raised when checkout names an unsupported shipping method."""

    error_code = "INVALID_SHIPPING_METHOD"

    def __init__(self, shipping_method: str, allowed: list[str]) -> None:
        super().__init__(
            "shipping_method",
            f"must be one of {allowed}",
            shipping_method,
        )


# ============================================================================
# Not Found Errors
# ============================================================================


class NotFoundError(DomainError):
    """Raised when an entity does not exist."""

    error_code = "NOT_FOUND"
    entity_type = "Entity"

    def __init__(self, entity_id: Any, message: str | None = None) -> None:
        super().__init__(
            message or f"{self.entity_type} not found: {entity_id}",
            details={"entity_type": self.entity_type, "entity_id": entity_id},
        )


class UserNotFoundError(NotFoundError):
    error_code = "USER_NOT_FOUND"
    entity_type = "User"


class ProductNotFoundError(NotFoundError):
    error_code = "PRODUCT_NOT_FOUND"
    entity_type = "Product"


class CategoryNotFoundError(NotFoundError):
    error_code = "CATEGORY_NOT_FOUND"
    entity_type = "Category"


class CartNotFoundError(NotFoundError):
    """Raised when a user has no cart, or only an empty one, at checkout."""

    error_code = "CART_NOT_FOUND"
    entity_type = "Cart"


class OrderNotFoundError(NotFoundError):
    error_code = "ORDER_NOT_FOUND"
    entity_type = "Order"


class TicketNotFoundError(NotFoundError):
    error_code = "TICKET_NOT_FOUND"
    entity_type = "SupportTicket"


# ============================================================================
# Conflict Errors
# ============================================================================


class ConflictError(DomainError):
    """Raised when current state prevents the operation from committing."""

    error_code = "CONFLICT"


class InsufficientStockError(ConflictError):
    """Raised when one or more products cannot cover the requested quantity."""

    error_code = "INSUFFICIENT_STOCK"

    def __init__(self, shortages: list[dict[str, int]]) -> None:
        """Initialize insufficient stock error.

        Args:
            shortages: One entry per short product with product_id,
                requested and available.
        """
        product_ids = [s["product_id"] for s in shortages]
        super().__init__(
            f"Insufficient stock for products {product_ids}",
            details={"shortages": shortages},
        )
        self.shortages = shortages


class InvalidStateTransitionError(ConflictError):
    """Raised when an invalid state transition is attempted.

    This error indicates that the requested operation cannot be performed
    in the current state of the entity.
    """

    error_code = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "Order").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


class ConcurrencyConflictError(ConflictError):
    """Raised when lock contention outlasts the retry budget."""

    error_code = "CONCURRENCY_CONFLICT"

    def __init__(self, operation: str, attempts: int) -> None:
        super().__init__(
            f"{operation} could not commit after {attempts} attempts",
            details={"operation": operation, "attempts": attempts},
        )


# ============================================================================
# Integrity Errors
# ============================================================================


class IntegrityError(DomainError):
    """Raised when a uniqueness rule would be violated."""

    error_code = "DUPLICATE"

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(
            f"{field} already in use: {value}",
            details={"field": field, "value": value},
        )
        self.field = field


# ============================================================================
# Authentication Errors
# ============================================================================


class AuthenticationError(DomainError):
    """Raised when login credentials do not match."""

    error_code = "INVALID_CREDENTIALS"

    def __init__(self) -> None:
        super().__init__("Invalid username or password")
