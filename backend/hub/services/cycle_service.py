# Overview: Consignment cycle accounting; opens cycles, settles them ("acerto") and feeds the ranking.

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from flask import current_app, has_app_context

from ..extensions import db
from ..models import ConsignmentCycle, Movement, Representative, SellerRanking
from ..models.cycles import CYCLE_OPEN, CYCLE_OVERDUE, CYCLE_SETTLED, UNSETTLED_STATUSES
from ..models.ledger import TYPE_DELIVERED, TYPE_RESTOCKED, TYPE_SOLD
from ..validation import ValidationError, ConflictError, NotFoundError, parse_money_to_cents
from hub.time_utils import utcnow, add_days, days_until
from .commission_policy import CommissionPolicy, get_commission_policy
from .state_store import lock_for_update

"""
Cycle Accounting Invariants (authoritative)

- due_at = started_at + CYCLE_LENGTH_DAYS (60); never extended or shortened.
- State machine: OPEN -> SETTLED, OPEN -> OVERDUE -> SETTLED. Nothing returns
  to OPEN; SETTLED is terminal.
- Settlement:
    total_sales = sum(price * quantity) over the sold-items snapshot
    rate        = commission policy tier for total_sales (whole amount, not marginal)
    commission  = total_sales * rate
    net_profit  = total_sales - commission
- Closing requires an idempotency token (settlement_key). The ranking aggregate
  for (organization_key, representative) is incremented exactly once per cycle;
  a replay with the same key returns the stored figures untouched.
"""

logger = logging.getLogger(__name__)

DEFAULT_CYCLE_LENGTH_DAYS = 60
DEFAULT_ORGANIZATION_KEY = "hub-soberano"


@dataclass(frozen=True)
class SoldItem:
    price_cents: int
    quantity: int


@dataclass(frozen=True)
class Settlement:
    total_sales_cents: int
    commission_rate_bps: int
    commission_cents: int
    net_profit_cents: int
    replayed: bool = False

    @property
    def commission_percentage(self) -> float:
        return self.commission_rate_bps / 100

    def to_dict(self) -> dict:
        return {
            "total_sales_cents": self.total_sales_cents,
            "commission_percentage": self.commission_percentage,
            "commission_cents": self.commission_cents,
            "net_profit_cents": self.net_profit_cents,
            "replayed": self.replayed,
        }


def _config(key: str, default):
    if not has_app_context():
        return default
    return current_app.config.get(key, default)


def parse_sold_items(raw_items) -> list[SoldItem]:
    """
    Normalize [{price, quantity}] payloads.

    price is in currency units ("150,00", 150.0); price_cents is taken as-is.
    """
    if not isinstance(raw_items, list):
        raise ValidationError("sold_items must be a list")

    items = []
    for idx, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"sold_items[{idx}] must be an object")
        if "price_cents" in raw:
            price_cents = raw["price_cents"]
            if not isinstance(price_cents, int) or isinstance(price_cents, bool):
                raise ValidationError(f"sold_items[{idx}].price_cents must be an integer")
        else:
            price_cents = parse_money_to_cents(raw.get("price"), field=f"sold_items[{idx}].price")
        quantity = raw.get("quantity", 1)
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 0:
            raise ValidationError(f"sold_items[{idx}].quantity must be a non-negative integer")
        if price_cents < 0:
            raise ValidationError(f"sold_items[{idx}].price must be >= 0")
        items.append(SoldItem(price_cents=price_cents, quantity=quantity))
    return items


def calculate_settlement(sold_items: Iterable[SoldItem], policy: CommissionPolicy | None = None) -> Settlement:
    """Pure settlement math over a sold-items snapshot."""
    policy = policy or CommissionPolicy()
    total = sum(i.price_cents * i.quantity for i in sold_items)
    rate_bps = policy.rate_bps(total)
    commission = policy.commission_cents(total)
    return Settlement(
        total_sales_cents=total,
        commission_rate_bps=rate_bps,
        commission_cents=commission,
        net_profit_cents=total - commission,
    )


def get_cycle(cycle_id: int) -> ConsignmentCycle:
    cycle = db.session.query(ConsignmentCycle).filter_by(id=cycle_id).first()
    if cycle is None:
        raise NotFoundError(f"cycle {cycle_id} not found")
    return cycle


def get_unsettled_cycle(representative_id: int) -> ConsignmentCycle | None:
    return (
        db.session.query(ConsignmentCycle)
        .filter(
            ConsignmentCycle.representative_id == representative_id,
            ConsignmentCycle.status.in_(UNSETTLED_STATUSES),
        )
        .order_by(ConsignmentCycle.id.desc())
        .first()
    )


def list_cycles(*, representative_id: int | None = None, status: str | None = None) -> list[ConsignmentCycle]:
    q = db.session.query(ConsignmentCycle)
    if representative_id is not None:
        q = q.filter(ConsignmentCycle.representative_id == representative_id)
    if status:
        q = q.filter(ConsignmentCycle.status == status.upper())
    return q.order_by(ConsignmentCycle.started_at.desc(), ConsignmentCycle.id.desc()).all()


def open_cycle(*, representative_id: int, started_at: datetime | None = None) -> ConsignmentCycle:
    """Start a consignment period; at most one unsettled cycle per representative."""
    rep = lock_for_update(db.session.query(Representative).filter_by(id=representative_id)).first()
    if rep is None:
        raise NotFoundError(f"representative {representative_id} not found")
    if not rep.is_active:
        raise ConflictError("representative is inactive")

    existing = get_unsettled_cycle(representative_id)
    if existing is not None:
        raise ConflictError(f"representative already has an unsettled cycle ({existing.id})")

    started = started_at or utcnow()
    cycle = ConsignmentCycle(
        representative_id=representative_id,
        status=CYCLE_OPEN,
        started_at=started,
        due_at=add_days(started, _config("CYCLE_LENGTH_DAYS", DEFAULT_CYCLE_LENGTH_DAYS)),
    )
    db.session.add(cycle)
    db.session.flush()
    return cycle


def sold_items_snapshot(cycle: ConsignmentCycle) -> list[SoldItem]:
    rows = (
        db.session.query(Movement)
        .filter(Movement.cycle_id == cycle.id, Movement.type == TYPE_SOLD)
        .order_by(Movement.id.asc())
        .all()
    )
    return [SoldItem(price_cents=m.unit_value_cents, quantity=m.quantity) for m in rows]


def _record_ranking(representative_id: int, settlement: Settlement) -> SellerRanking:
    org_key = _config("ORGANIZATION_KEY", DEFAULT_ORGANIZATION_KEY)
    ranking = lock_for_update(
        db.session.query(SellerRanking).filter_by(
            organization_key=org_key,
            representative_id=representative_id,
        )
    ).first()
    if ranking is None:
        ranking = SellerRanking(
            organization_key=org_key,
            representative_id=representative_id,
            total_sales_cents=0,
            total_commission_cents=0,
            cycles_settled=0,
        )
        db.session.add(ranking)

    ranking.total_sales_cents += settlement.total_sales_cents
    ranking.total_commission_cents += settlement.commission_cents
    ranking.cycles_settled += 1
    db.session.flush()
    logger.info(
        "Ranking updated for representative %s: sales +%s, commission +%s",
        representative_id,
        settlement.total_sales_cents,
        settlement.commission_cents,
    )
    return ranking


def close_cycle(
    *,
    cycle_id: int,
    settlement_key: str,
    sold_items: list[SoldItem] | None = None,
    now: datetime | None = None,
) -> Settlement:
    """
    Settle a cycle ("acerto").

    sold_items defaults to the SOLD movements stamped with this cycle.
    Idempotent per settlement_key.
    """
    key = (settlement_key or "").strip()
    if not key:
        raise ValidationError("settlement_key is required")

    cycle = lock_for_update(db.session.query(ConsignmentCycle).filter_by(id=cycle_id)).first()
    if cycle is None:
        raise NotFoundError(f"cycle {cycle_id} not found")

    if cycle.is_settled:
        if cycle.settlement_key == key:
            return Settlement(
                total_sales_cents=cycle.total_sales_cents,
                commission_rate_bps=cycle.commission_rate_bps,
                commission_cents=cycle.commission_cents,
                net_profit_cents=cycle.net_profit_cents,
                replayed=True,
            )
        raise ConflictError(f"cycle {cycle_id} is already settled")

    used = db.session.query(ConsignmentCycle).filter_by(settlement_key=key).first()
    if used is not None:
        raise ConflictError("settlement_key already used by another cycle")

    if sold_items is None:
        sold_items = sold_items_snapshot(cycle)

    settlement = calculate_settlement(sold_items, get_commission_policy())

    cycle.status = CYCLE_SETTLED
    cycle.settled_at = now or utcnow()
    cycle.settlement_key = key
    cycle.total_sales_cents = settlement.total_sales_cents
    cycle.commission_rate_bps = settlement.commission_rate_bps
    cycle.commission_cents = settlement.commission_cents
    cycle.net_profit_cents = settlement.net_profit_cents
    db.session.flush()

    _record_ranking(cycle.representative_id, settlement)
    return settlement


def refresh_overdue_cycles(now: datetime | None = None) -> int:
    """Mark OPEN cycles past their due date as OVERDUE. Returns how many changed."""
    now = now or utcnow()
    cycles = (
        db.session.query(ConsignmentCycle)
        .filter(ConsignmentCycle.status == CYCLE_OPEN, ConsignmentCycle.due_at < now)
        .all()
    )
    for cycle in cycles:
        cycle.status = CYCLE_OVERDUE
    db.session.flush()
    return len(cycles)


def cycle_overview(cycle: ConsignmentCycle, now: datetime | None = None) -> dict:
    """
    Timeline view: accumulated delivered value/pieces (original mount + additives)
    and the days left until the settlement deadline.
    """
    delivered = [m for m in cycle.movements if m.type in (TYPE_DELIVERED, TYPE_RESTOCKED)]
    return {
        **cycle.to_dict(),
        "days_remaining": None if cycle.is_settled else days_until(cycle.due_at, now),
        "accumulated_value_cents": sum(m.line_value_cents for m in delivered),
        "accumulated_pieces": sum(m.quantity for m in delivered),
        "movements": [m.to_dict() for m in cycle.movements],
    }


def list_ranking() -> list[SellerRanking]:
    org_key = _config("ORGANIZATION_KEY", DEFAULT_ORGANIZATION_KEY)
    return (
        db.session.query(SellerRanking)
        .filter_by(organization_key=org_key)
        .order_by(SellerRanking.total_sales_cents.desc(), SellerRanking.id.asc())
        .all()
    )
