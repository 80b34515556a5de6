# Overview: Flask API routes for the movement ledger; parses input and returns JSON responses.

from flask import Blueprint, request, current_app

from ..models import Movement
from hub.time_utils import parse_iso_datetime
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    parse_money_to_cents,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..services.state_store import commit_atomically

"""
Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- start/end filtering is inclusive on both ends.

Money:
- unit_value_cents accepts integer cents or a decimal amount in reais.
"""

MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "representative_id",
        "product_id",
        "cycle_id",
        "type",
        "quantity",
        "unit_value_cents",
        "adjustment_target",
        "client_name",
        "note",
        "image_url",
        "occurred_at",
    },
    required_on_create={"representative_id", "type"},
    money_fields={"unit_value_cents"},
)

movements_bp = Blueprint("movements", __name__, url_prefix="/api/movements")


@movements_bp.get("")
def list_movements_route():
    """
    Query params:
    - representative_id, product_id, type (code or label)
    - start, end: ISO-8601 datetimes (inclusive)
    - order: "desc" (default, newest first) or "asc"
    - limit: int (max 1000)
    """
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return {"error": "start and end must be ISO-8601 datetimes"}, 400

    limit = request.args.get("limit", type=int)
    if limit is not None:
        limit = max(1, min(limit, 1000))

    from ..services.ledger_service import query_movements

    try:
        rows = query_movements(
            representative_id=request.args.get("representative_id", type=int),
            product_id=request.args.get("product_id", type=int),
            type=request.args.get("type"),
            start=start,
            end=end,
            newest_first=request.args.get("order", "desc").lower() != "asc",
            limit=limit,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"items": [m.to_dict() for m in rows]}, 200


@movements_bp.post("")
def append_movement_route():
    """
    Append one movement (delivery, sale, return, restock or adjustment).

    Central stock and maleta on-hand are checked in the same transaction.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Movement, payload=payload, policy=MOVEMENT_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.ledger_service import append_movement

    try:
        mv = commit_atomically(lambda: append_movement(**patch))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    return mv.to_dict(), 201


@movements_bp.post("/adjustments")
def record_adjustment_route():
    """
    Financial correction.

    Body: {"representative_id", "target", "value" (reais) | "value_cents", "note"?}
    """
    payload = request.get_json(silent=True) or {}

    try:
        if isinstance(payload.get("value_cents"), int) and not isinstance(payload.get("value_cents"), bool):
            value_cents = payload["value_cents"]
        else:
            value_cents = parse_money_to_cents(payload.get("value"))
        representative_id = payload.get("representative_id")
        if not isinstance(representative_id, int) or isinstance(representative_id, bool):
            raise ValidationError("representative_id is required")
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.ledger_service import record_adjustment

    try:
        mv = commit_atomically(lambda: record_adjustment(
            representative_id=representative_id,
            target=payload.get("target"),
            value_cents=value_cents,
            note=payload.get("note"),
            occurred_at=payload.get("occurred_at"),
        ))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    return mv.to_dict(), 201


@movements_bp.post("/deliveries")
def deliver_maleta_route():
    """
    Mount (or top up, with "restock": true) a maleta in one batch.

    Body: {"representative_id", "items": {product_id: quantity}, "image_url"?,
           "restock"?, "notify"?, "photos_url"?}

    With "notify", the expedition receipt is sent over WhatsApp after the
    commit; a failed send never undoes the delivery.
    """
    payload = request.get_json(silent=True) or {}
    representative_id = payload.get("representative_id")
    if not isinstance(representative_id, int) or isinstance(representative_id, bool):
        return {"error": "representative_id is required"}, 400
    restock = bool(payload.get("restock"))

    from ..services.ledger_service import deliver_maleta

    try:
        movements = commit_atomically(lambda: deliver_maleta(
            representative_id=representative_id,
            items=payload.get("items"),
            occurred_at=payload.get("occurred_at"),
            image_url=payload.get("image_url"),
            restock=restock,
        ))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    response = {"items": [m.to_dict() for m in movements], "notified": False}

    if payload.get("notify"):
        response["notified"] = _notify_expedition(
            representative_id,
            movements,
            kind="ADDITIVE" if restock else "ORIGINAL",
            photos_url=payload.get("photos_url") or payload.get("image_url"),
        )

    return response, 201


def _notify_expedition(representative_id: int, movements, *, kind: str, photos_url) -> bool:
    from ..services.representative_service import get_representative
    from ..services.cycle_service import get_unsettled_cycle
    from ..services.messaging_service import build_expedition_payload, send_whatsapp

    try:
        rep = get_representative(representative_id)
        cycle = get_unsettled_cycle(representative_id)
        payload = build_expedition_payload(
            phone=rep.phone,
            name=rep.name,
            due_at=cycle.due_at if cycle else None,
            items=[{"name": m.product.name if m.product else m.product_id, "quantity": m.quantity} for m in movements],
            photos_url=photos_url,
            kind=kind,
        )
        return send_whatsapp(payload)
    except Exception:
        current_app.logger.exception("Expedition notification failed for representative %s", representative_id)
        return False
