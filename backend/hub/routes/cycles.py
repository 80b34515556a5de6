# Overview: Flask API routes for consignment cycles and settlement ("acerto").

from flask import Blueprint, request

from hub.time_utils import parse_iso_datetime
from ..validation import ValidationError, ConflictError, NotFoundError
from ..services.state_store import commit_atomically

"""
Closing is idempotent per settlement_key: clients generate the key once and
resend it on retry. A replay answers 200 with "replayed": true.
"""

cycles_bp = Blueprint("cycles", __name__, url_prefix="/api/cycles")


@cycles_bp.get("")
def list_cycles_route():
    from ..services.cycle_service import list_cycles

    cycles = list_cycles(
        representative_id=request.args.get("representative_id", type=int),
        status=request.args.get("status"),
    )
    return {"items": [c.to_dict() for c in cycles]}, 200


@cycles_bp.post("")
def open_cycle_route():
    payload = request.get_json(silent=True) or {}
    representative_id = payload.get("representative_id")
    if not isinstance(representative_id, int) or isinstance(representative_id, bool):
        return {"error": "representative_id is required"}, 400

    try:
        started_at = parse_iso_datetime(payload.get("started_at"))
    except (TypeError, ValueError, AttributeError):
        return {"error": "started_at must be an ISO-8601 datetime"}, 400

    from ..services.cycle_service import open_cycle

    try:
        cycle = commit_atomically(lambda: open_cycle(representative_id=representative_id, started_at=started_at))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return cycle.to_dict(), 201


@cycles_bp.get("/<int:cycle_id>")
def cycle_overview_route(cycle_id: int):
    from ..services.cycle_service import get_cycle, cycle_overview

    try:
        cycle = get_cycle(cycle_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return cycle_overview(cycle), 200


@cycles_bp.post("/<int:cycle_id>/close")
def close_cycle_route(cycle_id: int):
    """
    Body: {"settlement_key": str, "sold_items"?: [{"price" | "price_cents", "quantity"}]}

    Without sold_items the cycle's own SOLD movements are settled.
    """
    payload = request.get_json(silent=True) or {}

    from ..services.cycle_service import close_cycle, parse_sold_items

    try:
        sold_items = parse_sold_items(payload["sold_items"]) if "sold_items" in payload else None
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        settlement = commit_atomically(lambda: close_cycle(
            cycle_id=cycle_id,
            settlement_key=payload.get("settlement_key"),
            sold_items=sold_items,
        ))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400

    return settlement.to_dict(), 200


@cycles_bp.post("/settlement-preview")
def settlement_preview_route():
    """Settlement math for an arbitrary sold-items list; nothing is written."""
    payload = request.get_json(silent=True) or {}

    from ..services.cycle_service import calculate_settlement, parse_sold_items
    from ..services.commission_policy import get_commission_policy

    try:
        items = parse_sold_items(payload.get("sold_items"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    return calculate_settlement(items, get_commission_policy()).to_dict(), 200


@cycles_bp.post("/refresh-overdue")
def refresh_overdue_route():
    from ..services.cycle_service import refresh_overdue_cycles

    updated = commit_atomically(refresh_overdue_cycles)
    return {"updated": updated}, 200


@cycles_bp.get("/ranking")
def ranking_route():
    from ..services.cycle_service import list_ranking

    return {"items": [r.to_dict() for r in list_ranking()]}, 200
