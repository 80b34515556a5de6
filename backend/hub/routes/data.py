# Overview: Flask API routes for backup export/restore and reviewed sales imports.

from flask import Blueprint, request, current_app

from ..validation import ValidationError, ConflictError, NotFoundError
from ..services.state_store import commit_atomically

"""
Restore replaces the whole dataset in one transaction or not at all.
Pasted and recognized sales are parsed first (no writes), reviewed by the
client, then registered as SOLD movements in a single commit.
"""

data_bp = Blueprint("data", __name__, url_prefix="/api/data")


@data_bp.get("/export")
def export_route():
    from ..services.import_service import export_dataset

    return export_dataset(), 200


@data_bp.post("/restore")
def restore_route():
    from ..services.import_service import restore_dataset

    data = request.get_json(silent=True)
    if data is None:
        return {"error": "backup is not valid JSON"}, 400

    try:
        counts = commit_atomically(lambda: restore_dataset(data))
    except ValidationError as e:
        return {"error": str(e)}, 400

    current_app.logger.info("Dataset restored: %s", counts)
    return counts, 200


@data_bp.post("/sales/parse")
def parse_sales_route():
    """Body: {"text": "client,category,value\\n...", "representative_id": int}"""
    payload = request.get_json(silent=True) or {}
    representative_id = payload.get("representative_id")
    if not isinstance(representative_id, int) or isinstance(representative_id, bool):
        return {"error": "representative_id is required"}, 400

    from ..services.import_service import parse_pasted_sales
    from ..services.representative_service import get_representative

    try:
        get_representative(representative_id)
        records = parse_pasted_sales(payload.get("text") or "", representative_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"items": [r.to_dict() for r in records]}, 200


@data_bp.post("/sales/register")
def register_sales_route():
    """
    Body: {"records": [{"representative_id", "product_id", "client", "category",
                        "value" | "value_cents", "quantity"?, "status"?, "occurred_at"?}]}

    Only records with status "Vendida" become movements.
    """
    payload = request.get_json(silent=True) or {}
    raw_records = payload.get("records")
    if not isinstance(raw_records, list) or not raw_records:
        return {"error": "records must be a non-empty list"}, 400

    from ..services.import_service import sale_record_from_dict
    from ..services.ledger_service import record_sales

    try:
        records = [sale_record_from_dict(r, label=f"records[{i}]") for i, r in enumerate(raw_records, start=1)]
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        movements = commit_atomically(lambda: record_sales(records))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    return {"items": [m.to_dict() for m in movements]}, 201
