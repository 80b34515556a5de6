# Overview: Maleta summary engine; aggregates the ledger into per-representative financials.

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Iterable

from ..models.ledger import (
    TYPE_DELIVERED,
    TYPE_RESTOCKED,
    TYPE_SOLD,
    TYPE_RETURNED,
    TYPE_ADJUSTMENT,
    TARGET_SOLD,
    TARGET_COMMISSION,
    TARGET_TOTAL,
    TARGET_ADDITIONAL,
)
from ..models.representatives import MALETA_IN_FIELD, MALETA_STATUS_LABELS
from .commission_policy import CommissionPolicy, get_commission_policy
from .snapshots import load_movements, load_representatives

"""
Maleta Summary Invariants (authoritative)

- Pure function of (movements, representatives, policy): recomputed from
  scratch on every read, never cached, never incremental.
- total_delivered = sum(value * qty) over DELIVERED and RESTOCKED
- sold            = sum(value * qty) over SOLD
- ADJUSTMENT adds its signed value to the bucket named by adjustment_target:
    SOLD -> sold, COMMISSION -> commission, TOTAL -> total_delivered,
    ADDITIONAL -> additional
- The commission rate is chosen from the representative's WHOLE sold total
  (SOLD adjustments included); COMMISSION adjustments are added afterwards.
- owner = sold - commission
- status is the stored representative field, not derived from movements.
- Movements referencing unknown products still count by their own value.
"""


@dataclass(frozen=True)
class MaletaSummary:
    rep_id: int
    rep_name: str
    rep_phone: str | None
    total_delivered_cents: int
    items_delivered: int
    items_sold: int
    items_returned: int
    current_stock_qty: int
    sold_cents: int
    commission_rate_bps: int
    commission_cents: int
    owner_cents: int
    additional_cents: int
    is_closed: bool
    status: str

    @property
    def commission_percentage(self) -> float:
        return self.commission_rate_bps / 100

    def to_dict(self) -> dict:
        data = asdict(self)
        data["commission_percentage"] = self.commission_percentage
        data["status_label"] = MALETA_STATUS_LABELS.get(self.status, self.status)
        return data


def summarize_representative(movements: Iterable, rep, policy: CommissionPolicy) -> MaletaSummary:
    total_delivered = 0
    sold = 0
    commission_adjustment = 0
    additional = 0

    qty_delivered = 0
    qty_sold = 0
    qty_returned = 0

    for m in movements:
        if m.representative_id != rep.id:
            continue
        line_value = m.unit_value_cents * m.quantity

        if m.type == TYPE_ADJUSTMENT:
            if m.adjustment_target == TARGET_SOLD:
                sold += line_value
            elif m.adjustment_target == TARGET_COMMISSION:
                commission_adjustment += line_value
            elif m.adjustment_target == TARGET_TOTAL:
                total_delivered += line_value
            elif m.adjustment_target == TARGET_ADDITIONAL:
                additional += line_value
        elif m.type in (TYPE_DELIVERED, TYPE_RESTOCKED):
            total_delivered += line_value
            qty_delivered += m.quantity
        elif m.type == TYPE_SOLD:
            sold += line_value
            qty_sold += m.quantity
        elif m.type == TYPE_RETURNED:
            qty_returned += m.quantity

    rate_bps = policy.rate_bps(sold)
    commission = policy.commission_cents(sold) + commission_adjustment

    return MaletaSummary(
        rep_id=rep.id,
        rep_name=rep.name,
        rep_phone=rep.phone,
        total_delivered_cents=total_delivered,
        items_delivered=qty_delivered,
        items_sold=qty_sold,
        items_returned=qty_returned,
        current_stock_qty=qty_delivered - qty_sold - qty_returned,
        sold_cents=sold,
        commission_rate_bps=rate_bps,
        commission_cents=commission,
        owner_cents=sold - commission,
        additional_cents=additional,
        is_closed=not rep.is_active,
        status=rep.maleta_status or MALETA_IN_FIELD,
    )


def calculate_maleta_summaries(
    movements: Iterable,
    representatives: Iterable,
    policy: CommissionPolicy | None = None,
) -> list[MaletaSummary]:
    """One summary per representative, in the order representatives are given."""
    policy = policy or CommissionPolicy()
    movements = tuple(movements)
    return [summarize_representative(movements, rep, policy) for rep in representatives]


def get_maleta_summaries() -> list[MaletaSummary]:
    return calculate_maleta_summaries(
        load_movements(),
        load_representatives(),
        get_commission_policy(),
    )


def get_maleta_summary(representative_id: int) -> MaletaSummary | None:
    reps = [r for r in load_representatives() if r.id == representative_id]
    if not reps:
        return None
    return summarize_representative(load_movements(representative_id), reps[0], get_commission_policy())
