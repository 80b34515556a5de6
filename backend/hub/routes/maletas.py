# Overview: Flask API routes for maleta summaries and inventory; read-only views over the ledger.

from flask import Blueprint

from ..validation import ValidationError, NotFoundError

"""
Every response here is recomputed from the ledger on each request; nothing is
cached between calls.
"""

maletas_bp = Blueprint("maletas", __name__, url_prefix="/api/maletas")


@maletas_bp.get("")
def list_maleta_summaries_route():
    from ..services.summary_service import get_maleta_summaries

    return {"items": [s.to_dict() for s in get_maleta_summaries()]}, 200


@maletas_bp.get("/<int:representative_id>")
def get_maleta_summary_route(representative_id: int):
    from ..services.summary_service import get_maleta_summary

    summary = get_maleta_summary(representative_id)
    if summary is None:
        return {"error": f"representative {representative_id} not found"}, 404
    return summary.to_dict(), 200


@maletas_bp.get("/<int:representative_id>/inventory")
def get_maleta_inventory_route(representative_id: int):
    from ..services.representative_service import get_representative
    from ..services.inventory_service import get_representative_inventory

    try:
        get_representative(representative_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return get_representative_inventory(representative_id).to_dict(), 200


@maletas_bp.get("/<int:representative_id>/whatsapp")
def maleta_whatsapp_message_route(representative_id: int):
    """Control message plus a wa.me link the owner can open."""
    from ..services.representative_service import get_representative
    from ..services.inventory_service import get_representative_inventory
    from ..services.messaging_service import build_maleta_message, wa_me_link

    try:
        rep = get_representative(representative_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    message = build_maleta_message(rep, get_representative_inventory(representative_id))
    try:
        link = wa_me_link(rep.phone, message)
    except ValidationError:
        link = None

    return {"message": message, "link": link}, 200


@maletas_bp.post("/<int:representative_id>/whatsapp/send")
def send_maleta_whatsapp_route(representative_id: int):
    from ..services.representative_service import get_representative
    from ..services.inventory_service import get_representative_inventory
    from ..services.messaging_service import build_maleta_message, text_payload, send_whatsapp

    try:
        rep = get_representative(representative_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    if not rep.phone:
        return {"error": "representative has no phone number"}, 400

    message = build_maleta_message(rep, get_representative_inventory(representative_id))
    sent = send_whatsapp(text_payload(rep.phone, message))
    return {"sent": sent, "message": message}, 200
