"""
Order routes.

    POST   /order                  – place an order (auth, CSRF)
    GET    /order/all              – all orders, paginated (admin)
    GET    /order/all/me           – current user's orders, paginated
    GET    /order/me/{number}      – one of the current user's orders
    GET    /order/{number}         – any order by number (admin)
    PATCH  /order/{number}         – change status (admin, CSRF)
    DELETE /order/{id}             – delete (admin, CSRF)

Placement rules (POST /order):
    - Every product id must exist and have a price.
    - The submitted total must equal the sum of product prices.
    - The customer's order stats (total_amount, order_count, last order)
      are updated in the same transaction.
"""

import logging
import math
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.app.auth import get_current_user, require_admin
from src.app.csrf import CsrfContext, CsrfProtectedRoute, require_csrf
from src.app.database import get_db
from src.app.filters import MAX_PAGE, MAX_PAGE_SIZE
from src.app.models import Order, OrderStatus, PaymentType, Product, User
from src.app.routers.products import product_to_dict

router = APIRouter(prefix="/order", route_class=CsrfProtectedRoute)
logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ── Pydantic schemas ──────────────────────────────────────────────────────────


class OrderCreateRequest(BaseModel):
    items: list[int]
    payment: PaymentType
    total: float
    address: str
    email: str
    phone: str
    comment: str = ""

    @field_validator("items")
    @classmethod
    def _items_not_empty(cls, v: list[int]) -> list[int]:
        if not v:
            raise ValueError("order must contain at least one product")
        return v

    @field_validator("address", "phone")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("email")
    @classmethod
    def _email_normalise(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v


class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatus


def order_to_dict(o: Order) -> dict:
    return {
        "id": o.id,
        "orderNumber": o.order_number,
        "status": o.status.value,
        "payment": o.payment.value,
        "totalAmount": o.total_amount,
        "address": o.address,
        "email": o.email,
        "phone": o.phone,
        "comment": o.comment,
        "customer": {"id": o.customer.id, "name": o.customer.name, "email": o.customer.email},
        "products": [product_to_dict(p) for p in o.products],
        "createdAt": o.created_at.isoformat(),
    }


def _paginated(db: Session, stmt, page: int, limit: int) -> dict:
    total = db.scalar(select(func.count()).select_from(stmt.subquery()))
    orders = db.scalars(
        stmt.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return {
        "orders": [order_to_dict(o) for o in orders],
        "pagination": {
            "totalOrders": total,
            "totalPages": math.ceil(total / limit),
            "currentPage": page,
            "pageSize": limit,
        },
    }


def _next_order_number(db: Session) -> int:
    return (db.scalar(select(func.max(Order.order_number))) or 0) + 1


def _get_by_number_or_404(db: Session, order_number: int) -> Order:
    order = db.scalars(select(Order).where(Order.order_number == order_number)).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


# ── Endpoints ─────────────────────────────────────────────────────────────────


@router.post("", status_code=201)
def create_order(
    body: OrderCreateRequest,
    csrf: CsrfContext = Depends(require_csrf),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    products = db.scalars(select(Product).where(Product.id.in_(body.items))).all()
    by_id = {p.id: p for p in products}
    missing = [pid for pid in body.items if pid not in by_id]
    if missing:
        raise HTTPException(status_code=400, detail=f"Product {missing[0]} not found")
    priceless = [p.id for p in products if p.price is None]
    if priceless:
        raise HTTPException(status_code=400, detail=f"Product {priceless[0]} is not for sale")

    total = sum(by_id[pid].price for pid in body.items)
    if not math.isclose(total, body.total):
        raise HTTPException(status_code=400, detail="Order total does not match product prices")

    order = Order(
        order_number=_next_order_number(db),
        customer=user,
        payment=body.payment,
        total_amount=total,
        address=body.address,
        email=body.email,
        phone=body.phone,
        comment=body.comment,
        products=[by_id[pid] for pid in dict.fromkeys(body.items)],
    )
    db.add(order)
    db.flush()

    user.total_amount += total
    user.order_count += 1
    user.last_order_date = _utcnow()
    user.last_order_id = order.id
    db.commit()
    db.refresh(order)

    logger.info(
        "order_created order_number=%d user_id=%d total=%s",
        order.order_number, user.id, total,
    )
    return order_to_dict(order)


@router.get("/all")
def list_all_orders(
    page: int = Query(default=1, ge=1, le=MAX_PAGE),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    status: OrderStatus | None = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    stmt = select(Order)
    if status is not None:
        stmt = stmt.where(Order.status == status)
    return _paginated(db, stmt, page, limit)


@router.get("/all/me")
def list_my_orders(
    page: int = Query(default=1, ge=1, le=MAX_PAGE),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return _paginated(db, select(Order).where(Order.customer_id == user.id), page, limit)


@router.get("/me/{order_number}")
def get_my_order(
    order_number: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    order = _get_by_number_or_404(db, order_number)
    if order.customer_id != user.id:
        raise HTTPException(status_code=404, detail="Order not found")
    return order_to_dict(order)


@router.get("/{order_number}")
def get_order(
    order_number: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    return order_to_dict(_get_by_number_or_404(db, order_number))


@router.patch("/{order_number}")
def update_order_status(
    order_number: int,
    body: OrderStatusUpdateRequest,
    csrf: CsrfContext = Depends(require_csrf),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    order = _get_by_number_or_404(db, order_number)
    order.status = body.status
    db.commit()
    db.refresh(order)
    logger.info("order_status_updated order_number=%d status=%s", order_number, body.status.value)
    return order_to_dict(order)


@router.delete("/{order_id}")
def delete_order(
    order_id: int,
    csrf: CsrfContext = Depends(require_csrf),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    data = order_to_dict(order)
    db.delete(order)
    db.commit()
    return data
