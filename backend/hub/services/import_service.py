# Overview: Dataset export/restore and pasted-sales import.

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..extensions import db
from ..models import Product, Representative, Movement, ConsignmentCycle, SellerRanking
from ..models.catalog import CATEGORIES, DEFAULT_CATEGORY
from ..models.ledger import MANUAL_ADJUSTMENT_PRODUCT, TYPE_ADJUSTMENT
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    validate_payload,
    parse_money_to_cents,
    enforce_rules_product,
    enforce_rules_representative,
    enforce_rules_movement,
)
from hub.time_utils import utcnow, to_utc_z, parse_iso_datetime
from .ledger_service import normalize_movement_type, normalize_adjustment_target

"""
Import/Export Invariants (authoritative)

- Export shape: {"reps": [...], "prods": [...], "movs": [...], "exportDate": ISO}.
- Restore is all-or-nothing: every row is validated before anything is
  written, then the three collections are replaced in one transaction.
  Restoring also clears cycles and rankings, which belong to the old dataset.
- Restore is the only path that removes movements. Stock is restored verbatim;
  restored movements do not re-apply their stock effects.
- Pasted sales never touch the ledger directly: they become SaleRecords that
  are reviewed and then registered through ledger_service.record_sales().
"""

SALE_STATUS_SOLD = "Vendida"
SALE_STATUS_NOT_SOLD = "Não Vendida"
SALE_STATUS_CANCELLED = "Cancelada"
SALE_STATUSES = (SALE_STATUS_SOLD, SALE_STATUS_NOT_SOLD, SALE_STATUS_CANCELLED)

DEFAULT_CLIENT = "Cliente"


@dataclass
class SaleRecord:
    representative_id: int | None
    client: str
    category: str
    value_cents: int
    product_id: int | None = None
    quantity: int = 1
    status: str = SALE_STATUS_SOLD
    occurred_at: datetime | None = None
    product_name: str | None = None

    @property
    def value(self) -> float:
        return self.value_cents / 100

    def to_dict(self) -> dict:
        return {
            "representative_id": self.representative_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "client": self.client,
            "category": self.category,
            "quantity": self.quantity,
            "value": self.value,
            "value_cents": self.value_cents,
            "status": self.status,
            "occurred_at": to_utc_z(self.occurred_at),
        }


def normalize_category(value: Any) -> str:
    """Map free text to the closed category set (case-insensitive); default otherwise."""
    text = str(value or "").strip().lower()
    for category in CATEGORIES:
        if category.lower() == text:
            return category
    return DEFAULT_CATEGORY


def _optional_int(row: dict, key: str, label: str) -> int | None:
    raw = row.get(key)
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise ValidationError(f"{label}.{key} must be an integer")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{label}.{key} must be an integer")


def sale_record_from_dict(row: Any, *, label: str = "record") -> SaleRecord:
    """
    Rebuild a reviewed SaleRecord from JSON.

    value is in currency units; value_cents (int) wins when both are given.
    """
    if not isinstance(row, dict):
        raise ValidationError(f"{label} must be an object")

    if isinstance(row.get("value_cents"), int) and not isinstance(row.get("value_cents"), bool):
        value_cents = row["value_cents"]
    else:
        value_cents = parse_money_to_cents(row.get("value"), field=f"{label}.value")
    if value_cents < 0:
        raise ValidationError(f"{label}.value must be >= 0")

    status = row.get("status") or SALE_STATUS_SOLD
    if status not in SALE_STATUSES:
        raise ValidationError(f"{label}.status must be one of: {', '.join(SALE_STATUSES)}")

    quantity = _optional_int(row, "quantity", label)
    occurred_raw = row.get("occurred_at")
    try:
        occurred_at = parse_iso_datetime(occurred_raw) if isinstance(occurred_raw, str) else None
    except ValueError:
        raise ValidationError(f"{label}.occurred_at must be an ISO-8601 datetime")

    return SaleRecord(
        representative_id=_optional_int(row, "representative_id", label),
        product_id=_optional_int(row, "product_id", label),
        client=str(row.get("client") or DEFAULT_CLIENT).strip(),
        category=normalize_category(row.get("category")),
        value_cents=value_cents,
        quantity=1 if quantity is None else quantity,
        status=status,
        occurred_at=occurred_at,
        product_name=row.get("product_name"),
    )


def parse_pasted_sales(text: str, representative_id: int | None) -> list[SaleRecord]:
    """
    Parse "client,category,value" lines.

    The value is everything after the second comma, so the Brazilian decimal
    comma survives the split: "150,00" -> 150.00, "1.234,56" -> 1234.56.
    Any unreadable non-blank line rejects the whole batch.
    """
    if not representative_id:
        raise ValidationError("register a representative before importing sales")

    records: list[SaleRecord] = []
    for n, line in enumerate((text or "").splitlines(), start=1):
        if not line.strip():
            continue
        parts = [p.strip() for p in line.split(",")]
        if len(parts) < 3:
            raise ValidationError(f"line {n}: expected client,category,value")
        value_cents = parse_money_to_cents(",".join(parts[2:]), field=f"line {n}: value")
        if value_cents < 0:
            raise ValidationError(f"line {n}: value must be >= 0")
        records.append(
            SaleRecord(
                representative_id=representative_id,
                client=parts[0] or DEFAULT_CLIENT,
                category=normalize_category(parts[1]),
                value_cents=value_cents,
                occurred_at=utcnow(),
            )
        )

    if not records:
        raise ValidationError("no sales found in the pasted text")
    return records


def export_dataset() -> dict:
    return {
        "reps": [r.to_dict() for r in db.session.query(Representative).order_by(Representative.id).all()],
        "prods": [p.to_dict() for p in db.session.query(Product).order_by(Product.id).all()],
        "movs": [_movement_export(m) for m in db.session.query(Movement).order_by(Movement.id).all()],
        "exportDate": to_utc_z(utcnow()),
    }


def _movement_export(m: Movement) -> dict:
    data = m.to_dict()
    if data["product_id"] is None:
        data["product_id"] = MANUAL_ADJUSTMENT_PRODUCT
    return data


_REP_RESTORE_POLICY = ModelValidationPolicy(
    writable_fields={"id", "name", "phone", "city", "start_date", "end_date", "is_active", "maleta_status"},
    required_on_create={"id", "name"},
)

_PRODUCT_RESTORE_POLICY = ModelValidationPolicy(
    writable_fields={"id", "name", "sku", "category", "price_cents", "stock", "image_url", "is_active"},
    required_on_create={"id", "name"},
)

_MOVEMENT_RESTORE_POLICY = ModelValidationPolicy(
    writable_fields={
        "id", "representative_id", "product_id", "type", "quantity", "unit_value_cents",
        "adjustment_target", "client_name", "note", "image_url", "occurred_at",
    },
    required_on_create={"id", "representative_id", "type", "quantity", "unit_value_cents"},
)


def _pick(row: Any, policy: ModelValidationPolicy, label: str) -> dict:
    if not isinstance(row, dict):
        raise ValidationError(f"{label}: each row must be an object")
    return {k: v for k, v in row.items() if k in policy.writable_fields}


def _parse_restore_rows(data: dict) -> tuple[list[dict], list[dict], list[dict]]:
    reps, prods, movs = [], [], []

    for idx, row in enumerate(data["reps"], start=1):
        try:
            patch = validate_payload(model=Representative, payload=_pick(row, _REP_RESTORE_POLICY, "reps"),
                                     policy=_REP_RESTORE_POLICY, partial=False)
            enforce_rules_representative(patch)
        except ValidationError as e:
            raise ValidationError(f"reps[{idx}]: {e}")
        reps.append(patch)

    for idx, row in enumerate(data["prods"], start=1):
        try:
            patch = validate_payload(model=Product, payload=_pick(row, _PRODUCT_RESTORE_POLICY, "prods"),
                                     policy=_PRODUCT_RESTORE_POLICY, partial=False)
            enforce_rules_product(patch)
        except ValidationError as e:
            raise ValidationError(f"prods[{idx}]: {e}")
        patch.setdefault("category", DEFAULT_CATEGORY)
        prods.append(patch)

    for idx, row in enumerate(data["movs"], start=1):
        try:
            raw = _pick(row, _MOVEMENT_RESTORE_POLICY, "movs")
            if raw.get("product_id") == MANUAL_ADJUSTMENT_PRODUCT:
                raw["product_id"] = None
            if "type" in raw:
                raw["type"] = normalize_movement_type(raw["type"])
            if "adjustment_target" in raw:
                raw["adjustment_target"] = normalize_adjustment_target(raw["adjustment_target"])
            patch = validate_payload(model=Movement, payload=raw, policy=_MOVEMENT_RESTORE_POLICY, partial=False)
            enforce_rules_movement(patch)
        except ValidationError as e:
            raise ValidationError(f"movs[{idx}]: {e}")
        movs.append(patch)

    return reps, prods, movs


def _check_references(reps: list[dict], prods: list[dict], movs: list[dict]) -> None:
    for label, rows in (("reps", reps), ("prods", prods), ("movs", movs)):
        ids = [r["id"] for r in rows]
        if len(ids) != len(set(ids)):
            raise ValidationError(f"{label}: duplicate ids")

    skus = [p["sku"] for p in prods if p.get("sku")]
    if len(skus) != len(set(skus)):
        raise ValidationError("prods: duplicate sku")

    rep_ids = {r["id"] for r in reps}
    prod_ids = {p["id"] for p in prods}
    for idx, m in enumerate(movs, start=1):
        if m["representative_id"] not in rep_ids:
            raise ValidationError(f"movs[{idx}]: unknown representative {m['representative_id']}")
        if m.get("product_id") is not None and m["product_id"] not in prod_ids:
            raise ValidationError(f"movs[{idx}]: unknown product {m['product_id']}")
        if m["type"] != TYPE_ADJUSTMENT and m.get("product_id") is None:
            raise ValidationError(f"movs[{idx}]: product_id is required")


def load_backup_text(text: str) -> dict:
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        raise ValidationError("backup is not valid JSON")
    return data


def restore_dataset(data: Any) -> dict:
    """
    Replace representatives, products and movements with a backup.

    Validates everything first; on any problem raises ValidationError and
    writes nothing. Returns per-collection counts.
    """
    if not isinstance(data, dict):
        raise ValidationError("backup must be a JSON object")
    for key in ("reps", "prods", "movs"):
        if not isinstance(data.get(key), list):
            raise ValidationError(f"backup is missing the '{key}' list")

    reps, prods, movs = _parse_restore_rows(data)
    _check_references(reps, prods, movs)

    # Bulk deletes skip the ORM immutability hooks; a restore
    # replaces the whole dataset.
    db.session.query(SellerRanking).delete(synchronize_session=False)
    db.session.query(Movement).delete(synchronize_session=False)
    db.session.query(ConsignmentCycle).delete(synchronize_session=False)
    db.session.query(Product).delete(synchronize_session=False)
    db.session.query(Representative).delete(synchronize_session=False)
    db.session.expunge_all()

    db.session.add_all(Representative(**r) for r in reps)
    db.session.add_all(Product(**p) for p in prods)
    db.session.flush()
    db.session.add_all(Movement(**m) for m in movs)
    db.session.flush()

    return {"reps": len(reps), "prods": len(prods), "movs": len(movs)}
