from __future__ import annotations

from ..extensions import db
from hub.time_utils import to_utc_z, to_iso_date


MALETA_IN_FIELD = "IN_FIELD"
MALETA_AT_BASE = "AT_BASE"
MALETA_STATUSES = (MALETA_IN_FIELD, MALETA_AT_BASE)

MALETA_STATUS_LABELS = {
    MALETA_IN_FIELD: "Em Campo",
    MALETA_AT_BASE: "Na Base",
}


class Representative(db.Model):
    """
    A consignee ("vendedora") who carries a maleta and sells on commission.

    LIFECYCLE:
    Representatives are never hard-deleted once they own movements; they are
    deactivated (is_active=False), which marks their maleta summary as closed.

    maleta_status is stored, not derived: the owner flips it when the maleta
    physically comes back to the base.
    """
    __tablename__ = "representatives"
    __table_args__ = (
        db.Index("ix_representatives_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    city = db.Column(db.String(120), nullable=True)

    # Lease window for the current maleta arrangement
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    maleta_status = db.Column(db.String(16), nullable=False, default=MALETA_IN_FIELD)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Representative id={self.id} name={self.name!r} active={self.is_active}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "city": self.city,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "is_active": self.is_active,
            "maleta_status": self.maleta_status,
            "maleta_status_label": MALETA_STATUS_LABELS.get(self.maleta_status, self.maleta_status),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
