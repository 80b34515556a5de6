# Overview: Service-layer operations for the movement ledger; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from flask import current_app, has_app_context

from ..extensions import db
from ..models import Movement, Product, Representative, ConsignmentCycle
from ..models.ledger import (
    MOVEMENT_TYPES,
    MOVEMENT_TYPE_LABELS,
    ADJUSTMENT_TARGETS,
    TYPE_DELIVERED,
    TYPE_SOLD,
    TYPE_RETURNED,
    TYPE_RESTOCKED,
    TYPE_ADJUSTMENT,
)
from ..models.cycles import UNSETTLED_STATUSES
from ..validation import ValidationError, ConflictError, NotFoundError, enforce_rules_movement
from hub.time_utils import utcnow, parse_iso_datetime
from .inventory_service import get_on_hand_quantity
from .state_store import lock_for_update

"""
Movement Ledger Invariants (authoritative)

- Append-only: this module only INSERTS movements. Updates/deletes are rejected
  at the ORM level (see models.ledger).
- Appends for one representative are serialized on the representative row.
- Every append applies its central-stock effect in the same transaction:
    DELIVERED / RESTOCKED  -> product.stock -= quantity
    RETURNED               -> product.stock += quantity
    SOLD / ADJUSTMENT      -> no stock effect
- Central stock may never go negative (unless ALLOW_NEGATIVE_STOCK).
- SOLD and RETURNED may never exceed what the maleta holds for that product.
- Movements are stamped with the representative's unsettled cycle, if any.
  Settled cycles accept no new movements.
- Nothing here commits; callers wrap the action in state_store.atomic().
"""

_STOCK_DELTA_SIGN = {
    TYPE_DELIVERED: -1,
    TYPE_RESTOCKED: -1,
    TYPE_RETURNED: 1,
}

_TYPE_ALIASES = {label.lower(): code for code, label in MOVEMENT_TYPE_LABELS.items()}
_TYPE_ALIASES.update({code.lower(): code for code in MOVEMENT_TYPES})


def normalize_movement_type(value) -> str:
    """Accept codes ("SOLD") and display labels ("Vendido"), case-insensitively."""
    key = str(value or "").strip().lower()
    if key not in _TYPE_ALIASES:
        raise ValidationError(f"type must be one of: {', '.join(MOVEMENT_TYPES)}")
    return _TYPE_ALIASES[key]


def normalize_adjustment_target(value) -> Optional[str]:
    if value is None or value == "":
        return None
    target = str(value).strip().upper()
    if target not in ADJUSTMENT_TARGETS:
        raise ValidationError(f"adjustment_target must be one of: {', '.join(ADJUSTMENT_TARGETS)}")
    return target


def _parse_occurred_at(value) -> datetime:
    """
    Normalize occurred_at to canonical UTC-naive datetime.

    Accepts None (-> now), aware/naive datetimes and ISO-8601 strings.
    """
    if value is None:
        return utcnow()

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError("occurred_at must be an ISO-8601 datetime")
        if dt is None:
            raise ValidationError("occurred_at must be an ISO-8601 datetime")
        return dt

    raise ValidationError("occurred_at must be an ISO-8601 datetime")


def _allow_negative_stock() -> bool:
    return bool(has_app_context() and current_app.config.get("ALLOW_NEGATIVE_STOCK"))


def _lock_representative(representative_id: int) -> Representative:
    rep = lock_for_update(db.session.query(Representative).filter_by(id=representative_id)).first()
    if rep is None:
        raise NotFoundError(f"representative {representative_id} not found")
    return rep


def _get_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError(f"product {product_id} not found")
    return product


def _resolve_cycle(representative_id: int, cycle_id: int | None) -> ConsignmentCycle | None:
    if cycle_id is None:
        return (
            db.session.query(ConsignmentCycle)
            .filter(
                ConsignmentCycle.representative_id == representative_id,
                ConsignmentCycle.status.in_(UNSETTLED_STATUSES),
            )
            .order_by(ConsignmentCycle.id.desc())
            .first()
        )

    cycle = db.session.query(ConsignmentCycle).filter_by(id=cycle_id).first()
    if cycle is None:
        raise NotFoundError(f"cycle {cycle_id} not found")
    if cycle.representative_id != representative_id:
        raise ValidationError("cycle does not belong to representative")
    if cycle.is_settled:
        raise ConflictError(f"cycle {cycle_id} is settled and accepts no new movements")
    return cycle


def _apply_stock_effect(product: Product, movement_type: str, quantity: int) -> None:
    sign = _STOCK_DELTA_SIGN.get(movement_type)
    if sign is None:
        return
    new_stock = (product.stock or 0) + sign * quantity
    if new_stock < 0 and not _allow_negative_stock():
        raise ConflictError(
            f"insufficient central stock for product {product.id}: have {product.stock}, need {quantity}"
        )
    product.stock = new_stock


def append_movement(
    *,
    representative_id: int,
    type: str,
    product_id: int | None = None,
    quantity: int | None = None,
    unit_value_cents: int | None = None,
    adjustment_target: str | None = None,
    occurred_at=None,
    client_name: str | None = None,
    note: str | None = None,
    image_url: str | None = None,
    cycle_id: int | None = None,
) -> Movement:
    """
    Append one movement to the ledger.

    - Non-adjustment movements default their value to the current catalog price.
    - No updates/deletes of existing movements.
    - Flushes (id assigned) without committing.
    """
    movement_type = normalize_movement_type(type)
    target = normalize_adjustment_target(adjustment_target)
    if movement_type == TYPE_ADJUSTMENT and quantity is None:
        quantity = 1

    enforce_rules_movement({
        "representative_id": representative_id,
        "type": movement_type,
        "product_id": product_id,
        "quantity": quantity,
        "unit_value_cents": unit_value_cents,
        "adjustment_target": target,
    })
    occurred_dt = _parse_occurred_at(occurred_at)

    _lock_representative(representative_id)
    cycle = _resolve_cycle(representative_id, cycle_id)

    product = None
    if product_id is not None:
        product = _get_product(product_id, lock=True)
        if unit_value_cents is None:
            unit_value_cents = product.price_cents or 0

    if movement_type in (TYPE_SOLD, TYPE_RETURNED):
        on_hand = get_on_hand_quantity(representative_id, product_id)
        if quantity > on_hand:
            raise ConflictError(
                f"quantity exceeds maleta on-hand for product {product_id}: have {on_hand}, need {quantity}"
            )

    if product is not None:
        _apply_stock_effect(product, movement_type, quantity)

    mv = Movement(
        representative_id=representative_id,
        product_id=product_id,
        cycle_id=cycle.id if cycle else None,
        type=movement_type,
        quantity=quantity,
        unit_value_cents=unit_value_cents,
        adjustment_target=target,
        client_name=client_name,
        note=note,
        image_url=image_url,
        occurred_at=occurred_dt,
    )
    db.session.add(mv)
    db.session.flush()
    return mv


def record_adjustment(
    *,
    representative_id: int,
    target: str,
    value_cents: int,
    note: str | None = None,
    occurred_at=None,
) -> Movement:
    """
    Financial correction against one summary bucket (sold/commission/total/additional).

    Zero-value adjustments are rejected.
    """
    return append_movement(
        representative_id=representative_id,
        type=TYPE_ADJUSTMENT,
        quantity=1,
        unit_value_cents=value_cents,
        adjustment_target=target,
        note=note,
        occurred_at=occurred_at,
    )


def deliver_maleta(
    *,
    representative_id: int,
    items: dict[int, int],
    occurred_at=None,
    image_url: str | None = None,
    restock: bool = False,
) -> list[Movement]:
    """
    Mount (or top up) a maleta in one batch.

    One DELIVERED (or RESTOCKED) movement per product with a positive quantity,
    priced at the current catalog price. Central stock is decremented per item.
    """
    if not representative_id:
        raise ValidationError("representative_id is required")
    if not isinstance(items, dict):
        raise ValidationError("items must map product_id to quantity")

    selected: list[tuple[int, int]] = []
    for raw_id, raw_qty in items.items():
        try:
            product_id, qty = int(raw_id), int(raw_qty)
        except (TypeError, ValueError):
            raise ValidationError("items must map product_id to an integer quantity")
        if qty > 0:
            selected.append((product_id, qty))

    if not selected:
        raise ValidationError("select at least one item")

    occurred_dt = _parse_occurred_at(occurred_at)
    movement_type = TYPE_RESTOCKED if restock else TYPE_DELIVERED
    return [
        append_movement(
            representative_id=representative_id,
            type=movement_type,
            product_id=product_id,
            quantity=qty,
            occurred_at=occurred_dt,
            image_url=image_url,
        )
        for product_id, qty in selected
    ]


def record_sales(records: Iterable) -> list[Movement]:
    """
    Register reviewed sale records (pasted text, OCR, quick sale) as SOLD movements.

    Every sold record must name a representative and a product; otherwise the
    whole batch is rejected before anything is appended.
    """
    from .import_service import SALE_STATUS_SOLD

    records = list(records)
    sold = [r for r in records if r.status == SALE_STATUS_SOLD]
    if not sold:
        raise ValidationError("no sold records to register")

    for idx, r in enumerate(sold, start=1):
        if not r.representative_id:
            raise ValidationError(f"record {idx}: representative_id is required")
        if not r.product_id:
            raise ValidationError(f"record {idx}: product_id is required")
        if r.quantity <= 0:
            raise ValidationError(f"record {idx}: quantity must be > 0")

    return [
        append_movement(
            representative_id=r.representative_id,
            type=TYPE_SOLD,
            product_id=r.product_id,
            quantity=r.quantity,
            unit_value_cents=r.value_cents,
            client_name=r.client,
            occurred_at=r.occurred_at,
        )
        for r in sold
    ]


def query_movements(
    *,
    representative_id: int | None = None,
    product_id: int | None = None,
    type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    newest_first: bool = True,
    limit: int | None = None,
) -> list[Movement]:
    """
    Movements matching the filter, in insertion order (or reversed for display).

    The date range is inclusive on both ends.
    """
    q = db.session.query(Movement)
    if representative_id is not None:
        q = q.filter(Movement.representative_id == representative_id)
    if product_id is not None:
        q = q.filter(Movement.product_id == product_id)
    if type:
        q = q.filter(Movement.type == normalize_movement_type(type))
    if start is not None:
        q = q.filter(Movement.occurred_at >= start)
    if end is not None:
        q = q.filter(Movement.occurred_at <= end)

    q = q.order_by(Movement.id.desc() if newest_first else Movement.id.asc())
    if limit is not None:
        q = q.limit(limit)
    return q.all()
