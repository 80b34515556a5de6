# Overview: Immutable read snapshots that the pure aggregations run over.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Movement, Product, Representative


@dataclass(frozen=True)
class MovementSnapshot:
    id: int | None
    representative_id: int
    product_id: int | None
    type: str
    quantity: int
    unit_value_cents: int
    adjustment_target: str | None = None
    cycle_id: int | None = None

    @property
    def line_value_cents(self) -> int:
        return self.unit_value_cents * self.quantity


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    name: str
    sku: str | None
    category: str
    price_cents: int
    stock: int


@dataclass(frozen=True)
class RepresentativeSnapshot:
    id: int
    name: str
    phone: str | None
    is_active: bool
    maleta_status: str


def snapshot_movement(m: Movement) -> MovementSnapshot:
    return MovementSnapshot(
        id=m.id,
        representative_id=m.representative_id,
        product_id=m.product_id,
        type=m.type,
        quantity=m.quantity,
        unit_value_cents=m.unit_value_cents,
        adjustment_target=m.adjustment_target,
        cycle_id=m.cycle_id,
    )


def load_movements(representative_id: int | None = None) -> tuple[MovementSnapshot, ...]:
    q = db.session.query(Movement)
    if representative_id is not None:
        q = q.filter(Movement.representative_id == representative_id)
    return tuple(snapshot_movement(m) for m in q.order_by(Movement.id.asc()).all())


def load_products() -> tuple[ProductSnapshot, ...]:
    rows = db.session.query(Product).order_by(Product.id.asc()).all()
    return tuple(
        ProductSnapshot(
            id=p.id,
            name=p.name,
            sku=p.sku,
            category=p.category,
            price_cents=p.price_cents or 0,
            stock=p.stock or 0,
        )
        for p in rows
    )


def load_representatives() -> tuple[RepresentativeSnapshot, ...]:
    rows = db.session.query(Representative).order_by(Representative.name.asc(), Representative.id.asc()).all()
    return tuple(
        RepresentativeSnapshot(
            id=r.id,
            name=r.name,
            phone=r.phone,
            is_active=r.is_active,
            maleta_status=r.maleta_status,
        )
        for r in rows
    )
