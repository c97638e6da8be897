"""
Customer routes (admin only).

    GET    /customers        – filtered, sorted, paginated listing
    GET    /customers/{id}   – single customer
    PATCH  /customers/{id}   – update name / phone (CSRF)
    DELETE /customers/{id}   – delete customer and their orders (CSRF)

Listing query parameters (all optional): page, limit, sortField,
sortOrder (asc|desc), registrationDateFrom/To, lastOrderDateFrom/To,
totalAmountFrom/To, orderCountFrom/To, search. See src/app/filters.py.
"""

import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError, field_validator
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.app.auth import require_admin
from src.app.csrf import CsrfContext, CsrfProtectedRoute, require_csrf
from src.app.database import get_db
from src.app.filters import CustomerListQuery, build_customer_filter, strip_operator_keys
from src.app.models import Role, User

router = APIRouter(prefix="/customers", route_class=CsrfProtectedRoute)
logger = logging.getLogger(__name__)


class CustomerUpdateRequest(BaseModel):
    name: str | None = None
    phone: str | None = None

    @field_validator("name")
    @classmethod
    def _name_length(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not 2 <= len(v) <= 30:
            raise ValueError("name must be 2–30 characters")
        return v


def customer_to_dict(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "phone": u.phone,
        "totalAmount": u.total_amount,
        "orderCount": u.order_count,
        "lastOrderDate": u.last_order_date.isoformat() if u.last_order_date else None,
        "lastOrderId": u.last_order_id,
        "createdAt": u.created_at.isoformat(),
    }


def parse_customer_query(request: Request) -> CustomerListQuery:
    """Strip operator keys, then validate what is left (422 on bad input)."""
    params = strip_operator_keys(request.query_params)
    try:
        return CustomerListQuery.model_validate(params)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False))


def _get_customer_or_404(db: Session, customer_id: int) -> User:
    user = db.get(User, customer_id)
    if not user or user.role != Role.customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return user


@router.get("")
def list_customers(
    admin: User = Depends(require_admin),
    query: CustomerListQuery = Depends(parse_customer_query),
    db: Session = Depends(get_db),
) -> dict:
    spec = build_customer_filter(query)
    total = db.scalar(select(func.count()).select_from(User).where(*spec.where))
    customers = db.scalars(
        select(User)
        .where(*spec.where)
        .order_by(*spec.order_by, User.id)
        .offset(query.offset)
        .limit(query.limit)
    ).all()
    return {
        "customers": [customer_to_dict(u) for u in customers],
        "pagination": {
            "totalUsers": total,
            "totalPages": math.ceil(total / query.limit),
            "currentPage": query.page,
            "pageSize": query.limit,
        },
    }


@router.get("/{customer_id}")
def get_customer(
    customer_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    return customer_to_dict(_get_customer_or_404(db, customer_id))


@router.patch("/{customer_id}")
def update_customer(
    customer_id: int,
    body: CustomerUpdateRequest,
    csrf: CsrfContext = Depends(require_csrf),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    user = _get_customer_or_404(db, customer_id)
    for key, value in body.model_dump(exclude_unset=True).items():
        if key == "name" and value is None:
            continue
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return customer_to_dict(user)


@router.delete("/{customer_id}")
def delete_customer(
    customer_id: int,
    csrf: CsrfContext = Depends(require_csrf),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    user = _get_customer_or_404(db, customer_id)
    data = customer_to_dict(user)
    db.delete(user)
    db.commit()
    logger.info("customer_deleted customer_id=%d admin_id=%d", customer_id, admin.id)
    return data
