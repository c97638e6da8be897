"""
ORM models for the shop.

Tables (4):
    User           – customers and admins; carries denormalised order stats
                     (total_amount, order_count, last order) used by the
                     customer listing filters
    Product        – catalogue item; price is nullable ("priceless" items
                     are listed but cannot be ordered)
    Order          – customer order with a sequential public order_number
    order_product  – link table between orders and products
"""

import enum
from datetime import datetime, timezone


def _utcnow() -> datetime:
    """Return the current UTC time as a naive datetime (timezone info stripped).

    Keeps stored values consistent (naive UTC datetimes in SQLite).
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)

from sqlalchemy import Column, DateTime, Enum, Float, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.app.database import Base


# ── Enums ─────────────────────────────────────────────────────────────────────


class Role(str, enum.Enum):
    customer = "customer"
    admin = "admin"


class OrderStatus(str, enum.Enum):
    new = "new"
    delivering = "delivering"
    completed = "completed"
    cancelled = "cancelled"


class PaymentType(str, enum.Enum):
    card = "card"
    online = "online"


# ── Models ────────────────────────────────────────────────────────────────────


order_product = Table(
    "order_product",
    Base.metadata,
    Column("order_id", ForeignKey("order.id", ondelete="CASCADE"), primary_key=True),
    Column("product_id", ForeignKey("product.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    """Auth identity for customers and admins."""

    __tablename__ = "user"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False, default="Евлампий")
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role), nullable=False, default=Role.customer, index=True
    )
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow, index=True
    )

    # Order stats, updated when an order is placed.
    total_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    order_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_order_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    # Plain column (no FK) to avoid a user <-> order dependency cycle.
    last_order_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    orders: Mapped[list["Order"]] = relationship(
        back_populates="customer", cascade="all, delete-orphan"
    )


class Product(Base):
    """Catalogue item shown in the shop."""

    __tablename__ = "product"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    price: Mapped[float | None] = mapped_column(Float, nullable=True)
    image_file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    image_original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow
    )


class Order(Base):
    """A placed order. order_number is the public identifier."""

    __tablename__ = "order"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_number: Mapped[int] = mapped_column(
        Integer, unique=True, nullable=False, index=True
    )
    customer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus), nullable=False, default=OrderStatus.new, index=True
    )
    payment: Mapped[PaymentType] = mapped_column(Enum(PaymentType), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow, index=True
    )

    customer: Mapped["User"] = relationship(back_populates="orders")
    products: Mapped[list["Product"]] = relationship(secondary=order_product)
