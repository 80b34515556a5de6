from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..validation import ConflictError
from hub.time_utils import to_utc_z


TYPE_DELIVERED = "DELIVERED"
TYPE_SOLD = "SOLD"
TYPE_RETURNED = "RETURNED"
TYPE_RESTOCKED = "RESTOCKED"
TYPE_ADJUSTMENT = "ADJUSTMENT"
MOVEMENT_TYPES = (TYPE_DELIVERED, TYPE_SOLD, TYPE_RETURNED, TYPE_RESTOCKED, TYPE_ADJUSTMENT)

MOVEMENT_TYPE_LABELS = {
    TYPE_DELIVERED: "Entregue",
    TYPE_SOLD: "Vendido",
    TYPE_RETURNED: "Devolvido",
    TYPE_RESTOCKED: "Reposição",
    TYPE_ADJUSTMENT: "Ajuste",
}

TARGET_SOLD = "SOLD"
TARGET_COMMISSION = "COMMISSION"
TARGET_TOTAL = "TOTAL"
TARGET_ADDITIONAL = "ADDITIONAL"
ADJUSTMENT_TARGETS = (TARGET_SOLD, TARGET_COMMISSION, TARGET_TOTAL, TARGET_ADDITIONAL)

# Exported product id for pure financial adjustments (product_id IS NULL)
MANUAL_ADJUSTMENT_PRODUCT = "manual-adj"


class LedgerImmutableError(ConflictError):
    """Raised when something tries to rewrite ledger history."""


class Movement(db.Model):
    """
    Consignment ledger event.

    INVARIANTS:
    - Append-only: rows are never updated or deleted through the ORM.
      Corrections are new ADJUSTMENT rows carrying a signed value and the
      bucket they affect (adjustment_target).
    - product_id IS NULL only for ADJUSTMENT ("manual-adj").
    - quantity >= 0; ADJUSTMENT always uses quantity=1.
    - unit_value_cents is the TRANSACTION price (revenue accounting), never
      re-priced afterwards.
    - occurred_at is business time; created_at is system time (db default).
    """
    __tablename__ = "movements"
    __table_args__ = (
        db.Index("ix_movements_rep_occurred", "representative_id", "occurred_at"),
        db.Index("ix_movements_rep_product_type", "representative_id", "product_id", "type"),
        db.CheckConstraint("quantity >= 0", name="ck_movements_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    representative_id = db.Column(db.Integer, db.ForeignKey("representatives.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    cycle_id = db.Column(db.Integer, db.ForeignKey("consignment_cycles.id"), nullable=True, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_value_cents = db.Column(db.Integer, nullable=False, default=0)

    adjustment_target = db.Column(db.String(16), nullable=True)

    client_name = db.Column(db.String(255), nullable=True)
    note = db.Column(db.String(255), nullable=True)
    image_url = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    representative = db.relationship("Representative", backref=db.backref("movements", lazy=True))
    product = db.relationship("Product")

    @property
    def line_value_cents(self) -> int:
        return self.unit_value_cents * self.quantity

    def __repr__(self) -> str:
        return (
            f"<Movement id={self.id} type={self.type} rep={self.representative_id} "
            f"product={self.product_id} qty={self.quantity} value={self.unit_value_cents}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "representative_id": self.representative_id,
            "product_id": self.product_id,
            "cycle_id": self.cycle_id,
            "type": self.type,
            "type_label": MOVEMENT_TYPE_LABELS.get(self.type, self.type),
            "quantity": self.quantity,
            "unit_value_cents": self.unit_value_cents,
            "line_value_cents": self.line_value_cents,
            "adjustment_target": self.adjustment_target,
            "client_name": self.client_name,
            "note": self.note,
            "image_url": self.image_url,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(Movement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise LedgerImmutableError(f"movement {target.id} is immutable; record an adjustment instead")


@event.listens_for(Movement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise LedgerImmutableError(f"movement {target.id} cannot be deleted")
