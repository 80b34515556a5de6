# Overview: Maleta inventory projection; derives on-hand stock per representative from the ledger.

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import case, func

from ..extensions import db
from ..models import Movement
from ..models.ledger import TYPE_DELIVERED, TYPE_RESTOCKED, TYPE_SOLD, TYPE_RETURNED
from .snapshots import load_movements, load_products

"""
Maleta Inventory Invariants (authoritative)

Inventory model:
- A maleta is ledger-derived; it is never stored as a mutable quantity field.
- On-hand per product = DELIVERED + RESTOCKED - SOLD - RETURNED quantities.
- ADJUSTMENT movements are financial only and never move pieces.

Valuation:
- On-hand pieces are valued at the CURRENT catalog price at read time, not the
  price stamped on the delivery. Revenue uses movement prices; patrimony uses
  catalog prices. Valuation therefore drifts when the catalog is re-priced.
- A product id missing from the catalog is priced 0 and named "unknown".

Display:
- Rows whose on-hand quantity is zero or negative are excluded.
"""

UNKNOWN_PRODUCT_NAME = "unknown"

_QTY_SIGN = {
    TYPE_DELIVERED: 1,
    TYPE_RESTOCKED: 1,
    TYPE_SOLD: -1,
    TYPE_RETURNED: -1,
}


@dataclass(frozen=True)
class MaletaItem:
    product_id: int
    product_name: str
    product_code: str | None
    category: str | None
    quantity: int
    unit_price_cents: int

    @property
    def total_value_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_code": self.product_code,
            "category": self.category,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_value_cents": self.total_value_cents,
        }


@dataclass(frozen=True)
class MaletaInventory:
    representative_id: int
    items: tuple[MaletaItem, ...] = field(default_factory=tuple)

    @property
    def total_quantity(self) -> int:
        return sum(i.quantity for i in self.items)

    @property
    def total_value_cents(self) -> int:
        return sum(i.total_value_cents for i in self.items)

    def to_dict(self) -> dict:
        return {
            "representative_id": self.representative_id,
            "items": [i.to_dict() for i in self.items],
            "total_quantity": self.total_quantity,
            "total_value_cents": self.total_value_cents,
        }


def on_hand_by_product(movements: Iterable, representative_id: int) -> dict[int, int]:
    """Signed on-hand quantity per product id (zero/negative rows included)."""
    balances: dict[int, int] = defaultdict(int)
    for m in movements:
        if m.representative_id != representative_id or m.product_id is None:
            continue
        sign = _QTY_SIGN.get(m.type)
        if sign is None:
            continue
        balances[m.product_id] += sign * m.quantity
    return dict(balances)


def project_maleta(movements: Iterable, products: Iterable, representative_id: int) -> MaletaInventory:
    """
    Pure projection of a representative's maleta.

    movements/products may be snapshots or ORM rows; nothing is mutated.
    """
    catalog = {p.id: p for p in products}
    items = []
    for product_id, qty in on_hand_by_product(movements, representative_id).items():
        if qty <= 0:
            continue
        product = catalog.get(product_id)
        items.append(
            MaletaItem(
                product_id=product_id,
                product_name=product.name if product else UNKNOWN_PRODUCT_NAME,
                product_code=product.sku if product else None,
                category=product.category if product else None,
                quantity=qty,
                unit_price_cents=(product.price_cents or 0) if product else 0,
            )
        )
    items.sort(key=lambda i: (i.product_name.lower(), i.product_id))
    return MaletaInventory(representative_id=representative_id, items=tuple(items))


def get_representative_inventory(representative_id: int) -> MaletaInventory:
    return project_maleta(
        load_movements(representative_id),
        load_products(),
        representative_id,
    )


def get_on_hand_quantity(representative_id: int, product_id: int) -> int:
    """
    On-hand quantity of one product in one maleta, aggregated in SQL.

    Used by the ledger to refuse sales/returns the maleta cannot cover.
    """
    signed_qty = case(
        (Movement.type.in_([TYPE_DELIVERED, TYPE_RESTOCKED]), Movement.quantity),
        (Movement.type.in_([TYPE_SOLD, TYPE_RETURNED]), -Movement.quantity),
        else_=0,
    )
    q = db.session.query(func.coalesce(func.sum(signed_qty), 0)).filter(
        Movement.representative_id == representative_id,
        Movement.product_id == product_id,
    )
    return int(q.scalar() or 0)
