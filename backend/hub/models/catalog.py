from __future__ import annotations

from ..extensions import db
from hub.time_utils import to_utc_z


CATEGORY_BRINCOS = "Brincos"
CATEGORY_CONJUNTOS = "Conjuntos"
CATEGORY_DUPLAS_TRIOS = "Duplas e Trios"
CATEGORY_PULSEIRAS_COLARES = "Pulseiras e Colares"
CATEGORY_ANEIS = "Anéis"

# Closed set, in display order
CATEGORIES = (
    CATEGORY_BRINCOS,
    CATEGORY_CONJUNTOS,
    CATEGORY_DUPLAS_TRIOS,
    CATEGORY_PULSEIRAS_COLARES,
    CATEGORY_ANEIS,
)
DEFAULT_CATEGORY = CATEGORY_BRINCOS


class Product(db.Model):
    """
    Catalog entry for a piece of jewelry.

    STOCK DESIGN DECISION:
    Product.stock is the CENTRAL stock (pieces at the base, not in any maleta).
    It is a stored counter, moved only by the ledger service in the same
    transaction as the Movement that explains the change:
    - DELIVERED / RESTOCKED decrement it
    - RETURNED increments it
    - SOLD and ADJUSTMENT leave it untouched (the piece already left the base)

    PRICE:
    price_cents is the CURRENT catalog price. Movements snapshot the transaction
    price; maleta valuation re-prices on-hand pieces at this value.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_category_active", "category", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    # Optional printed code; unique when present (NULLs do not collide)
    sku = db.Column(db.String(64), nullable=True)
    category = db.Column(db.String(32), nullable=False, default=DEFAULT_CATEGORY, index=True)

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)

    image_url = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

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
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "category": self.category,
            "price_cents": self.price_cents,
            "stock": self.stock,
            "image_url": self.image_url,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
