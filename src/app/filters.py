"""
Customer listing filters.

Turns raw query parameters into SQLAlchemy where/order clauses:

1. ``strip_operator_keys`` drops every parameter whose key starts with the
   operator prefix ``$``. It runs once, before anything else looks at the
   parameters.
2. ``CustomerListQuery`` parses what is left into typed, range-checked values.
   Malformed input is rejected (pydantic -> 422) instead of being ignored.
3. ``build_customer_filter`` produces the clauses. Free-text search is
   escaped for LIKE so user text never acts as a wildcard pattern.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy import or_, select
from sqlalchemy.sql.elements import ColumnElement

from src.app.models import Order, Role, User

OPERATOR_PREFIX = "$"
LIKE_ESCAPE = "\\"
MAX_PAGE_SIZE = 100
# Keeps the worst-case offset (MAX_PAGE - 1) * MAX_PAGE_SIZE within a 64-bit INTEGER.
MAX_PAGE = 1_000_000_000

# Public sort field name -> column. Anything else is not sortable.
SORTABLE_FIELDS = {
    "createdAt": User.created_at,
    "name": User.name,
    "email": User.email,
    "totalAmount": User.total_amount,
    "orderCount": User.order_count,
    "lastOrderDate": User.last_order_date,
}


def strip_operator_keys(params: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of *params* without keys starting with ``$``."""
    return {k: v for k, v in params.items() if not str(k).startswith(OPERATOR_PREFIX)}


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so *text* only ever matches literally."""
    return (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


class CustomerListQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    page: int = Field(default=1, ge=1, le=MAX_PAGE)
    limit: int = Field(default=10, ge=1, le=MAX_PAGE_SIZE)
    sort_field: str = Field(default="createdAt", alias="sortField")
    sort_order: Literal["asc", "desc"] = Field(default="desc", alias="sortOrder")
    registration_date_from: date | None = Field(default=None, alias="registrationDateFrom")
    registration_date_to: date | None = Field(default=None, alias="registrationDateTo")
    last_order_date_from: date | None = Field(default=None, alias="lastOrderDateFrom")
    last_order_date_to: date | None = Field(default=None, alias="lastOrderDateTo")
    total_amount_from: float | None = Field(default=None, ge=0, alias="totalAmountFrom")
    total_amount_to: float | None = Field(default=None, ge=0, alias="totalAmountTo")
    order_count_from: int | None = Field(default=None, ge=0, alias="orderCountFrom")
    order_count_to: int | None = Field(default=None, ge=0, alias="orderCountTo")
    search: str | None = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def _ranges_not_inverted(self) -> "CustomerListQuery":
        pairs = (
            ("registrationDate", self.registration_date_from, self.registration_date_to),
            ("lastOrderDate", self.last_order_date_from, self.last_order_date_to),
            ("totalAmount", self.total_amount_from, self.total_amount_to),
            ("orderCount", self.order_count_from, self.order_count_to),
        )
        for name, low, high in pairs:
            if low is not None and high is not None and low > high:
                raise ValueError(f"{name}From must not be after {name}To")
        return self

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class CustomerFilter:
    where: list[ColumnElement] = field(default_factory=list)
    order_by: list[ColumnElement] = field(default_factory=list)


def _start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min)


def _end_of_day(d: date) -> datetime:
    return datetime.combine(d, time.max)


def _sort_clause(sort_field: str, sort_order: str) -> ColumnElement | None:
    if not sort_field or sort_field.startswith(OPERATOR_PREFIX):
        return None
    column = SORTABLE_FIELDS.get(sort_field)
    if column is None:
        return None
    return column.desc() if sort_order == "desc" else column.asc()


def build_customer_filter(query: CustomerListQuery) -> CustomerFilter:
    """Translate a validated query into where/order clauses on User."""
    result = CustomerFilter(where=[User.role == Role.customer])
    where = result.where

    if query.registration_date_from is not None:
        where.append(User.created_at >= _start_of_day(query.registration_date_from))
    if query.registration_date_to is not None:
        where.append(User.created_at <= _end_of_day(query.registration_date_to))
    if query.last_order_date_from is not None:
        where.append(User.last_order_date >= _start_of_day(query.last_order_date_from))
    if query.last_order_date_to is not None:
        where.append(User.last_order_date <= _end_of_day(query.last_order_date_to))
    if query.total_amount_from is not None:
        where.append(User.total_amount >= query.total_amount_from)
    if query.total_amount_to is not None:
        where.append(User.total_amount <= query.total_amount_to)
    if query.order_count_from is not None:
        where.append(User.order_count >= query.order_count_from)
    if query.order_count_to is not None:
        where.append(User.order_count <= query.order_count_to)

    if query.search:
        pattern = f"%{escape_like(query.search)}%"
        matching_orders = select(Order.id).where(
            Order.address.ilike(pattern, escape=LIKE_ESCAPE)
        )
        where.append(
            or_(
                User.name.ilike(pattern, escape=LIKE_ESCAPE),
                User.last_order_id.in_(matching_orders),
            )
        )

    sort = _sort_clause(query.sort_field, query.sort_order)
    if sort is not None:
        result.order_by.append(sort)
    return result
