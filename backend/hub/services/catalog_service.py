# backend/hub/services/catalog_service.py
"""
Catalog Service

Products are referenced (never owned) by movements, so a product that appears
in the ledger is deactivated rather than deleted. Central stock is edited
directly only through create/update (inventory counts); every other stock
change goes through the ledger.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Product, Movement
from ..models.catalog import CATEGORIES, DEFAULT_CATEGORY
from ..validation import ConflictError, NotFoundError

PRODUCT_MUTABLE_FIELDS = {"name", "sku", "category", "price_cents", "stock", "image_url", "is_active"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_sku_free(sku: str | None, *, exclude_id: int | None = None) -> None:
    if not sku:
        return
    q = db.session.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"sku {sku!r} already exists")


def get_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise NotFoundError(f"product {product_id} not found")
    return product


def list_products(*, search: str | None = None, category: str | None = None, include_inactive: bool = False) -> list[Product]:
    """Catalog listing; search matches name or code, case-insensitively."""
    q = db.session.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    if category:
        q = q.filter(Product.category == category)
    if search:
        like = f"%{search.strip().lower()}%"
        q = q.filter(or_(db.func.lower(Product.name).like(like), db.func.lower(Product.sku).like(like)))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def create_product(*, patch: dict) -> Product:
    _ensure_sku_free(patch.get("sku"))
    product = Product(
        name=patch["name"],
        sku=patch.get("sku"),
        category=patch.get("category") or DEFAULT_CATEGORY,
        price_cents=patch.get("price_cents") or 0,
        stock=patch.get("stock") or 0,
        image_url=patch.get("image_url"),
        is_active=patch.get("is_active", True),
    )
    db.session.add(product)
    db.session.flush()
    return product


def update_product(product_id: int, *, patch: dict) -> Product:
    product = get_product(product_id)
    if "sku" in patch:
        _ensure_sku_free(patch["sku"], exclude_id=product.id)
    apply_product_patch(product, patch)
    db.session.flush()
    return product


def delete_product(product_id: int) -> dict:
    """
    Hard-delete a product nobody references; otherwise deactivate it.

    Returns {"deleted": bool, "deactivated": bool}.
    """
    product = get_product(product_id)
    referenced = db.session.query(Movement.id).filter(Movement.product_id == product.id).first() is not None
    if referenced:
        product.is_active = False
        db.session.flush()
        return {"deleted": False, "deactivated": True}

    db.session.delete(product)
    db.session.flush()
    return {"deleted": True, "deactivated": False}


def import_products(rows: list[dict]) -> list[Product]:
    """
    Bulk-create products from reviewed extraction rows (already normalized).

    Unknown categories fall back to the default category.
    """
    created = []
    for row in rows:
        category = row.get("category")
        created.append(
            create_product(patch={
                "name": row.get("name") or "Produto Importado",
                "sku": row.get("sku") or None,
                "category": category if category in CATEGORIES else DEFAULT_CATEGORY,
                "price_cents": row.get("price_cents") or 0,
                "stock": row.get("stock") or 0,
            })
        )
    return created


def deactivate_product(product_id: int) -> Product:
    """Hide a product from the catalog; its ledger history stays intact."""
    product = get_product(product_id)
    product.is_active = False
    db.session.flush()
    return product
