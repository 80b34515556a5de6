from __future__ import annotations

from ..extensions import db
from ..models import Representative
from ..models.representatives import MALETA_IN_FIELD
from ..validation import NotFoundError, ValidationError

REPRESENTATIVE_MUTABLE_FIELDS = {
    "name", "phone", "city", "start_date", "end_date", "is_active", "maleta_status",
}


def get_representative(representative_id: int) -> Representative:
    rep = db.session.query(Representative).filter_by(id=representative_id).first()
    if rep is None:
        raise NotFoundError(f"representative {representative_id} not found")
    return rep


def list_representatives(*, include_inactive: bool = True) -> list[Representative]:
    q = db.session.query(Representative)
    if not include_inactive:
        q = q.filter(Representative.is_active.is_(True))
    return q.order_by(Representative.name.asc(), Representative.id.asc()).all()


def create_representative(*, patch: dict) -> Representative:
    rep = Representative(
        name=patch["name"],
        phone=patch.get("phone"),
        city=patch.get("city"),
        start_date=patch.get("start_date"),
        end_date=patch.get("end_date"),
        is_active=patch.get("is_active", True),
        maleta_status=patch.get("maleta_status") or MALETA_IN_FIELD,
    )
    db.session.add(rep)
    db.session.flush()
    return rep


def update_representative(representative_id: int, *, patch: dict) -> Representative:
    rep = get_representative(representative_id)
    start = patch.get("start_date", rep.start_date)
    end = patch.get("end_date", rep.end_date)
    if start and end and end < start:
        raise ValidationError("end_date must be on or after start_date")

    for k, v in patch.items():
        if k in REPRESENTATIVE_MUTABLE_FIELDS:
            setattr(rep, k, v)
    db.session.flush()
    return rep


def deactivate_representative(representative_id: int) -> Representative:
    """Soft lifecycle: representatives are closed, never deleted."""
    rep = get_representative(representative_id)
    rep.is_active = False
    db.session.flush()
    return rep
