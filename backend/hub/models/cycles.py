from __future__ import annotations

from ..extensions import db
from hub.time_utils import to_utc_z


CYCLE_OPEN = "OPEN"
CYCLE_SETTLED = "SETTLED"
CYCLE_OVERDUE = "OVERDUE"
UNSETTLED_STATUSES = (CYCLE_OPEN, CYCLE_OVERDUE)


class ConsignmentCycle(db.Model):
    """
    A time-boxed consignment period for one representative.

    LIFECYCLE:
    1. OPEN: created with due_at = started_at + CYCLE_LENGTH_DAYS
    2. OVERDUE: OPEN and past due_at (set by refresh_overdue_cycles)
    3. SETTLED: closed by the cycle accounting service ("acerto"); terminal

    No transition ever leads back to OPEN. A representative has at most one
    unsettled (OPEN/OVERDUE) cycle at a time.

    IDEMPOTENCY:
    settlement_key is the token the closing call supplied. Replaying the same
    key returns the stored settlement; a different key is a conflict.
    """
    __tablename__ = "consignment_cycles"
    __table_args__ = (
        db.Index("ix_cycles_rep_status", "representative_id", "status"),
        db.UniqueConstraint("settlement_key", name="uq_cycles_settlement_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    representative_id = db.Column(db.Integer, db.ForeignKey("representatives.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=CYCLE_OPEN, index=True)

    started_at = db.Column(db.DateTime(timezone=True), nullable=False)
    due_at = db.Column(db.DateTime(timezone=True), nullable=False)
    settled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    settlement_key = db.Column(db.String(128), nullable=True)
    total_sales_cents = db.Column(db.Integer, nullable=True)
    commission_rate_bps = db.Column(db.Integer, nullable=True)
    commission_cents = db.Column(db.Integer, nullable=True)
    net_profit_cents = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    representative = db.relationship("Representative", backref=db.backref("cycles", lazy=True))
    movements = db.relationship("Movement", backref="cycle", lazy=True, order_by="Movement.id")

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_settled(self) -> bool:
        return self.status == CYCLE_SETTLED

    def settlement_dict(self) -> dict | None:
        if not self.is_settled:
            return None
        return {
            "total_sales_cents": self.total_sales_cents,
            "commission_percentage": (self.commission_rate_bps or 0) / 100,
            "commission_cents": self.commission_cents,
            "net_profit_cents": self.net_profit_cents,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "representative_id": self.representative_id,
            "status": self.status,
            "started_at": to_utc_z(self.started_at),
            "due_at": to_utc_z(self.due_at),
            "settled_at": to_utc_z(self.settled_at),
            "settlement_key": self.settlement_key,
            "settlement": self.settlement_dict(),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class SellerRanking(db.Model):
    """
    Cumulative ranking/dashboard aggregate keyed by (organization_key, representative_id).

    Only the cycle accounting service writes here, once per settled cycle.
    """
    __tablename__ = "seller_rankings"
    __table_args__ = (
        db.UniqueConstraint("organization_key", "representative_id", name="uq_rankings_org_rep"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_key = db.Column(db.String(64), nullable=False, index=True)
    representative_id = db.Column(db.Integer, db.ForeignKey("representatives.id"), nullable=False, index=True)

    total_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    total_commission_cents = db.Column(db.Integer, nullable=False, default=0)
    cycles_settled = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    representative = db.relationship("Representative")

    def to_dict(self) -> dict:
        return {
            "organization_key": self.organization_key,
            "representative_id": self.representative_id,
            "representative_name": self.representative.name if self.representative else None,
            "total_sales_cents": self.total_sales_cents,
            "total_commission_cents": self.total_commission_cents,
            "cycles_settled": self.cycles_settled,
            "updated_at": to_utc_z(self.updated_at),
        }
