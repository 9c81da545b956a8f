"""
SQLAlchemy Database Models

Tables:
- users: customers and admins
- menu_items: the catalog, with customization option definitions
- orders: checkout snapshots with kitchen and payment status
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    DateTime,
    Text,
    Enum,
    Boolean,
    JSON,
)

from tableorder.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class OrderStatus(str, enum.Enum):
    """Kitchen fulfilment status."""
    PENDING = "pending"
    IN_PROGRESS = "in progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Targets accepted by the status update endpoint
STATUS_UPDATE_TARGETS = (
    OrderStatus.IN_PROGRESS,
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
)


class PaymentStatus(str, enum.Enum):
    """Settlement status, independent of fulfilment."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    UPI = "upi"


class User(Base):
    """
    Customer or admin account.

    ``password`` holds an scrypt hash and is empty for customers created
    by a verified email OTP or a mobile + name login. ``email`` is empty
    only for the latter.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), nullable=True, unique=True, index=True)
    mobile_number = Column(String(20), nullable=True, unique=True)
    full_name = Column(String(100), nullable=True)
    password = Column(String(255), nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        role = "admin" if self.is_admin else "customer"
        return f"<User #{self.id} - {self.email} - {role}>"


class MenuItem(Base):
    """
    Catalog entry.

    ``customizations`` is an ordered list of
    ``{"name": str, "choices": [str, ...], "maxChoices": int}``.
    """
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(50), nullable=False, index=True)
    subcategory = Column(String(50), nullable=True)
    image_url = Column(String(500), nullable=False, default="")
    is_vegetarian = Column(Boolean, default=False, nullable=False)
    is_best_seller = Column(Boolean, default=False, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    customizations = Column(JSON, nullable=False, default=list)

    def __repr__(self):
        state = "available" if self.is_available else "unavailable"
        return f"<MenuItem #{self.id} - {self.name} - {self.price} - {state}>"


class Order(Base):
    """
    Order created once from a cart snapshot at checkout.

    ``items`` is the submitted list of
    ``{"menuItemId": int, "quantity": int, "customizations": {option: [choice]}}``
    and ``total`` is stored exactly as the client computed it.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # =========================================================================
    # CUSTOMER
    # =========================================================================
    user_id = Column(Integer, nullable=True, index=True)
    user_email = Column(String(255), nullable=True, index=True)
    mobile_number = Column(String(20), nullable=True)
    customer_name = Column(String(100), nullable=True)
    table_number = Column(Integer, nullable=False)

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    items = Column(JSON, nullable=False)
    cooking_instructions = Column(Text, nullable=True)
    total = Column(Numeric(10, 2), nullable=False)

    # =========================================================================
    # STATUS
    # =========================================================================
    status = Column(
        Enum(OrderStatus, name="order_status", values_callable=_enum_values),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_status = Column(
        Enum(PaymentStatus, name="payment_status", values_callable=_enum_values),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    payment_method = Column(
        Enum(PaymentMethod, name="payment_method", values_callable=_enum_values),
        nullable=True,
    )

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow, nullable=True)

    def __repr__(self):
        return f"<Order #{self.id} - table {self.table_number} - {self.status.value}>"
