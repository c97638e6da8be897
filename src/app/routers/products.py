"""
Product routes.

    GET    /product        – paginated catalogue (public)
    GET    /product/{id}   – single product (public)
    POST   /product        – create (admin, CSRF)
    PATCH  /product/{id}   – partial update (admin, CSRF)
    DELETE /product/{id}   – delete (admin, CSRF)
"""

import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.app.auth import require_admin
from src.app.csrf import CsrfContext, CsrfProtectedRoute, require_csrf
from src.app.database import get_db
from src.app.filters import MAX_PAGE, MAX_PAGE_SIZE
from src.app.models import Product, User

router = APIRouter(prefix="/product", route_class=CsrfProtectedRoute)
logger = logging.getLogger(__name__)


# ── Pydantic schemas ──────────────────────────────────────────────────────────


class ProductImage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName", min_length=1)
    original_name: str = Field(alias="originalName", min_length=1)


class ProductCreateRequest(BaseModel):
    title: str
    image: ProductImage
    category: str
    description: str | None = None
    price: float | None = Field(default=None, ge=0)

    @field_validator("title")
    @classmethod
    def _title_length(cls, v: str) -> str:
        v = v.strip()
        if not 2 <= len(v) <= 30:
            raise ValueError("title must be 2–30 characters")
        return v


class ProductUpdateRequest(BaseModel):
    title: str | None = None
    image: ProductImage | None = None
    category: str | None = None
    description: str | None = None
    price: float | None = Field(default=None, ge=0)

    @field_validator("title")
    @classmethod
    def _title_length(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not 2 <= len(v) <= 30:
            raise ValueError("title must be 2–30 characters")
        return v


def product_to_dict(p: Product) -> dict:
    return {
        "id": p.id,
        "title": p.title,
        "description": p.description,
        "category": p.category,
        "price": p.price,
        "image": {"fileName": p.image_file_name, "originalName": p.image_original_name},
    }


def _get_product_or_404(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _commit_unique_title(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Product with this title already exists")


# ── Endpoints ─────────────────────────────────────────────────────────────────


@router.get("")
def list_products(
    page: int = Query(default=1, ge=1, le=MAX_PAGE),
    limit: int = Query(default=5, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
) -> dict:
    total = db.scalar(select(func.count()).select_from(Product))
    products = db.scalars(
        select(Product).order_by(Product.id).offset((page - 1) * limit).limit(limit)
    ).all()
    return {
        "items": [product_to_dict(p) for p in products],
        "pagination": {
            "totalProducts": total,
            "totalPages": math.ceil(total / limit),
            "currentPage": page,
            "pageSize": limit,
        },
    }


@router.get("/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db)) -> dict:
    return product_to_dict(_get_product_or_404(db, product_id))


@router.post("", status_code=201)
def create_product(
    body: ProductCreateRequest,
    csrf: CsrfContext = Depends(require_csrf),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    product = Product(
        title=body.title,
        description=body.description,
        category=body.category,
        price=body.price,
        image_file_name=body.image.file_name,
        image_original_name=body.image.original_name,
    )
    db.add(product)
    _commit_unique_title(db)
    db.refresh(product)
    logger.info("product_created product_id=%d admin_id=%d", product.id, admin.id)
    return product_to_dict(product)


@router.patch("/{product_id}")
def update_product(
    product_id: int,
    body: ProductUpdateRequest,
    csrf: CsrfContext = Depends(require_csrf),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    product = _get_product_or_404(db, product_id)
    changes = body.model_dump(exclude_unset=True)
    image = changes.pop("image", None)
    for key, value in changes.items():
        if value is None and key in ("title", "category"):
            continue
        setattr(product, key, value)
    if image:
        product.image_file_name = image["file_name"]
        product.image_original_name = image["original_name"]
    _commit_unique_title(db)
    db.refresh(product)
    return product_to_dict(product)


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    csrf: CsrfContext = Depends(require_csrf),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    product = _get_product_or_404(db, product_id)
    data = product_to_dict(product)
    db.delete(product)
    db.commit()
    logger.info("product_deleted product_id=%d admin_id=%d", product_id, admin.id)
    return data
