"""SQLAlchemy models for database tables.

Provides ORM models for users, catalogue, carts, orders, delivery
records, support tickets and the audit log.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.infrastructure.database import Base


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that always comes back as UTC.

    SQLite drops the offset on storage, so naive values read back are
    tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


Money = Numeric(12, 2, asdecimal=True)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# User Models
# ============================================================================


class UserModel(Base):
    """Registered marketplace user."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    mobile_number: Mapped[str | None] = mapped_column(String(15), nullable=True)
    registration_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    last_login_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, without the password hash."""
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "username": self.username,
            "mobile_number": self.mobile_number,
            "registration_date": self.registration_date.isoformat() if self.registration_date else None,
            "last_login_date": self.last_login_date.isoformat() if self.last_login_date else None,
        }


class ShippingAddressModel(Base):
    """Shipping address saved by a user."""

    __tablename__ = "shipping_addresses"
    __table_args__ = (
        CheckConstraint("length(zip_code) BETWEEN 5 AND 9", name="ck_shipping_addresses_zip_code"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    apartment_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    street: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    zip_code: Mapped[str] = mapped_column(String(20), nullable=False)
    region: Mapped[str | None] = mapped_column(String(25), nullable=True)
    country: Mapped[str] = mapped_column(String(100), nullable=False)


class SellerModel(Base):
    """Registered seller account.

    Sellers sign up separately from shoppers, so email and username only
    need to be unique among sellers.
    """

    __tablename__ = "sellers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    mobile_number: Mapped[str | None] = mapped_column(String(15), nullable=True)
    registration_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    last_login_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ============================================================================
# Catalogue Models
# ============================================================================


product_promotions = Table(
    "product_promotions",
    Base.metadata,
    Column(
        "promotion_id",
        Integer,
        ForeignKey("promotions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "product_id",
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class CategoryModel(Base):
    """Product category."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)


class ProductModel(Base):
    """Product with list price and stock on hand.

    stock_quantity is written only through the inventory ledger.
    """

    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_products_stock_quantity"),
        CheckConstraint("price >= 0", name="ck_products_price"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    category: Mapped[CategoryModel | None] = relationship()
    promotions: Mapped[list["PromotionModel"]] = relationship(
        secondary=product_promotions,
        back_populates="products",
        order_by="PromotionModel.id",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": str(self.price),
            "stock_quantity": self.stock_quantity,
            "category_id": self.category_id,
        }


class PromotionModel(Base):
    """Percentage discount valid over an inclusive date window."""

    __tablename__ = "promotions"
    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_promotions_date_range"),
        CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="ck_promotions_discount_percentage",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    discount_percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    products: Mapped[list[ProductModel]] = relationship(
        secondary=product_promotions,
        back_populates="promotions",
    )


# ============================================================================
# Cart Models
# ============================================================================


class CartModel(Base):
    """A user's in-progress cart. At most one per user."""

    __tablename__ = "carts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    lines: Mapped[list["CartLineModel"]] = relationship(
        back_populates="cart",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CartLineModel.id",
    )


class CartLineModel(Base):
    """Quantity of one product in a cart."""

    __tablename__ = "cart_lines"
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_cart_lines_cart_product"),
        CheckConstraint("quantity > 0", name="ck_cart_lines_quantity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cart_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    cart: Mapped[CartModel] = relationship(back_populates="lines")


# ============================================================================
# Order Models
# ============================================================================


class OrderModel(Base):
    """Order created by checkout.

    total_price is frozen at creation and never recomputed.
    """

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("status IN ('Placed', 'Cancelled')", name="ck_orders_status"),
        CheckConstraint(
            "shipping_method IN ('Standard', 'Express', 'Same-Day')",
            name="ck_orders_shipping_method",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    total_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    shipping_method: Mapped[str] = mapped_column(String(20), nullable=False)
    order_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    lines: Mapped[list["OrderLineModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderLineModel.id",
    )
    delivery: Mapped["DeliveryRecordModel | None"] = relationship(
        back_populates="order",
        uselist=False,
        passive_deletes=True,
    )
    status_history: Mapped[list["OrderStatusHistoryModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderStatusHistoryModel.id",
    )


class OrderLineModel(Base):
    """Immutable priced line of an order."""

    __tablename__ = "order_lines"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_lines_quantity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    list_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Money, nullable=False)
    # Plain column: the order keeps its price even if the promotion is deleted
    promotion_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    order: Mapped[OrderModel] = relationship(back_populates="lines")


class OrderStatusHistoryModel(Base):
    """Order status history model for audit trail.

    Tracks all status transitions for an order.
    """

    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    order: Mapped[OrderModel] = relationship(back_populates="status_history")


class DeliveryRecordModel(Base):
    """Delivery tracking for an order that has reached Placed."""

    __tablename__ = "delivery_records"
    __table_args__ = (
        CheckConstraint(
            "actual_delivery_date IS NULL OR actual_delivery_date >= expected_delivery_date",
            name="ck_delivery_records_dates",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    tracking_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    expected_delivery_date: Mapped[date] = mapped_column(Date, nullable=False)
    actual_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    order: Mapped[OrderModel] = relationship(back_populates="delivery")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "order_id": self.order_id,
            "tracking_id": self.tracking_id,
            "expected_delivery_date": self.expected_delivery_date.isoformat(),
            "actual_delivery_date": (
                self.actual_delivery_date.isoformat() if self.actual_delivery_date else None
            ),
            "status": self.status,
        }


# ============================================================================
# Support Models
# ============================================================================


class SupportTicketModel(Base):
    """Customer support ticket."""

    __tablename__ = "support_tickets"
    __table_args__ = (
        CheckConstraint("status IN ('Open', 'Pending', 'Closed')", name="ck_support_tickets_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("orders.id"), nullable=True)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="Open")
    created_on: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


# ============================================================================
# Audit Models
# ============================================================================


class AuditLogModel(Base):
    """Persisted change event."""

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    entity: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(10), nullable=False)
    before: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)
    after: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)
    actor: Mapped[str] = mapped_column(String(100), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
