# Overview: Flask API routes for representatives; parses input and returns JSON responses.

# backend/hub/routes/representatives.py
"""
Representative (vendedora) routes.

Representatives are never deleted: closing one deactivates it, which marks
its maleta summary as closed.
"""
from flask import Blueprint, request

from ..models import Representative
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_representative,
    ValidationError,
    NotFoundError,
)
from ..services.state_store import commit_atomically

REPRESENTATIVE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "city", "start_date", "end_date", "is_active", "maleta_status"},
    required_on_create={"name"},
)

representatives_bp = Blueprint("representatives", __name__, url_prefix="/api/representatives")


@representatives_bp.get("")
def list_representatives_route():
    """
    Query params:
    - include_inactive: bool (default true)
    """
    from ..services.representative_service import list_representatives

    include_inactive = request.args.get("include_inactive", "true").lower() in ("1", "true", "yes")
    reps = list_representatives(include_inactive=include_inactive)
    return {"items": [r.to_dict() for r in reps]}, 200


@representatives_bp.post("")
def create_representative_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Representative, payload=payload, policy=REPRESENTATIVE_POLICY, partial=False)
        enforce_rules_representative(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.representative_service import create_representative

    try:
        rep = commit_atomically(lambda: create_representative(patch=patch))
    except ValueError as e:
        return {"error": str(e)}, 400

    return rep.to_dict(), 201


@representatives_bp.get("/<int:representative_id>")
def get_representative_route(representative_id: int):
    from ..services.representative_service import get_representative

    try:
        return get_representative(representative_id).to_dict(), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@representatives_bp.put("/<int:representative_id>")
def update_representative_route(representative_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Representative, payload=payload, policy=REPRESENTATIVE_POLICY, partial=True)
        enforce_rules_representative(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.representative_service import update_representative

    try:
        rep = commit_atomically(lambda: update_representative(representative_id, patch=patch))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValueError as e:
        return {"error": str(e)}, 400

    return rep.to_dict(), 200


@representatives_bp.post("/<int:representative_id>/deactivate")
def deactivate_representative_route(representative_id: int):
    from ..services.representative_service import deactivate_representative

    try:
        rep = commit_atomically(lambda: deactivate_representative(representative_id))
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return rep.to_dict(), 200
