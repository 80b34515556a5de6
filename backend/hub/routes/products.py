# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

# backend/hub/routes/products.py
"""
Product catalog routes.

price_cents accepts integer cents or a decimal amount in reais ("149,90").
Central stock set here is an inventory count; every other stock change goes
through the movement ledger.
"""
from flask import Blueprint, request

from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_money_to_cents,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..services.state_store import commit_atomically

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "sku", "category", "price_cents", "stock", "image_url", "is_active"},
    required_on_create={"name"},
    money_fields={"price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    """
    Query params:
    - search: matches name or code
    - category: exact category
    - include_inactive: bool (default false)
    """
    from ..services.catalog_service import list_products

    include_inactive = request.args.get("include_inactive", "false").lower() in ("1", "true", "yes")
    products = list_products(
        search=request.args.get("search"),
        category=request.args.get("category"),
        include_inactive=include_inactive,
    )
    return {"items": [p.to_dict() for p in products]}, 200


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.catalog_service import create_product

    try:
        created = commit_atomically(lambda: create_product(patch=patch))
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    return created.to_dict(), 201


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    from ..services.catalog_service import get_product

    try:
        return get_product(product_id).to_dict(), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.catalog_service import update_product

    try:
        updated = commit_atomically(lambda: update_product(product_id, patch=patch))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    return updated.to_dict(), 200


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    """Products already in the ledger are deactivated instead of deleted."""
    from ..services.catalog_service import delete_product

    try:
        result = commit_atomically(lambda: delete_product(product_id))
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return result, 200


@products_bp.post("/<int:product_id>/deactivate")
def deactivate_product_route(product_id: int):
    from ..services.catalog_service import deactivate_product

    try:
        product = commit_atomically(lambda: deactivate_product(product_id))
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return product.to_dict(), 200


def _import_row(raw, idx: int) -> dict:
    """Reviewed extraction row: {name, code|sku, category, price|price_cents, stock}."""
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{idx}] must be an object")
    if "price_cents" in raw:
        price = raw["price_cents"]
    else:
        price = parse_money_to_cents(raw.get("price", 0), field=f"items[{idx}].price")
    row = {
        "name": raw.get("name") or "Produto Importado",
        "sku": raw.get("sku", raw.get("code")) or None,
        "price_cents": price,
        "stock": raw.get("stock") or 0,
    }
    try:
        patch = validate_payload(model=Product, payload=row, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        raise ValidationError(f"items[{idx}]: {e}")
    patch["category"] = raw.get("category")
    return patch


@products_bp.post("/import")
def import_products_route():
    """
    Bulk-create products reviewed from an image extraction.

    Body: {"items": [...]}. All rows are validated before anything is written.
    """
    payload = request.get_json(silent=True) or {}
    items = payload.get("items")
    if not isinstance(items, list) or not items:
        return {"error": "items must be a non-empty list"}, 400

    try:
        rows = [_import_row(raw, idx) for idx, raw in enumerate(items, start=1)]
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.catalog_service import import_products

    try:
        created = commit_atomically(lambda: import_products(rows))
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    return {"items": [p.to_dict() for p in created]}, 201
