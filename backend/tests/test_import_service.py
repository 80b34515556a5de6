# Overview: Pytest coverage for pasted-sales parsing and backup export/restore.

import json

import pytest

from hub.extensions import db
from hub.models import Movement, Product, Representative
from hub.models.ledger import MANUAL_ADJUSTMENT_PRODUCT
from hub.services.import_service import (
    SALE_STATUS_SOLD,
    export_dataset,
    load_backup_text,
    normalize_category,
    parse_pasted_sales,
    restore_dataset,
    sale_record_from_dict,
)
from hub.services.ledger_service import deliver_maleta, record_adjustment
from hub.services.state_store import commit_atomically
from hub.validation import ValidationError


class TestPastedSales:
    """'client,category,value' lines with Brazilian decimal commas."""

    def test_decimal_comma_survives_split(self):
        records = parse_pasted_sales("Maria,Brincos,150,00\nJoão,Anéis,89,90", representative_id=7)

        assert [r.value_cents for r in records] == [15000, 8990]
        assert [r.category for r in records] == ["Brincos", "Anéis"]
        assert [r.client for r in records] == ["Maria", "João"]
        assert all(r.status == SALE_STATUS_SOLD for r in records)
        assert all(r.representative_id == 7 for r in records)

    def test_blank_lines_are_ignored(self):
        [record] = parse_pasted_sales("\n  \nBia,conjuntos,42\n", representative_id=1)
        assert record.category == "Conjuntos"
        assert record.value_cents == 4200

    def test_thousands_separator_in_value(self):
        records = parse_pasted_sales("João,Anéis,1.234,56\nBia,Conjuntos,2.500", representative_id=1)
        assert [r.value_cents for r in records] == [123456, 250000]

    @pytest.mark.parametrize("text, line", [
        ("Maria,Brincos,150,00\nJoão,Anéis,1.234,56\nAna,Colar,abc", 3),
        ("header only\nMaria,Brincos,150,00", 1),
        ("Maria,Brincos,150,00\n\nAna,Colar,-5", 3),
        ("Maria,Brincos,1,234,56", 1),
    ])
    def test_bad_line_rejects_whole_batch(self, text, line):
        with pytest.raises(ValidationError, match=f"line {line}:"):
            parse_pasted_sales(text, representative_id=1)

    def test_unknown_category_defaults(self):
        [record] = parse_pasted_sales("Ana,Tornozeleira,10", representative_id=1)
        assert record.category == "Brincos"

    def test_requires_representative(self):
        with pytest.raises(ValidationError):
            parse_pasted_sales("Maria,Brincos,150,00", representative_id=None)

    def test_nothing_parsed(self):
        with pytest.raises(ValidationError):
            parse_pasted_sales("\n\n", representative_id=1)

    def test_normalize_category_is_case_insensitive(self):
        assert normalize_category("pulseiras e colares") == "Pulseiras e Colares"
        assert normalize_category(None) == "Brincos"


class TestSaleRecordFromDict:
    def test_value_in_currency_units(self):
        r = sale_record_from_dict({"value": "1.299,90", "representative_id": "3", "product_id": 4})
        assert r.value_cents == 129990
        assert r.representative_id == 3
        assert r.product_id == 4
        assert r.client == "Cliente"
        assert r.quantity == 1

    def test_value_cents_wins(self):
        r = sale_record_from_dict({"value": 1, "value_cents": 4550, "occurred_at": "2026-10-01T12:00:00Z"})
        assert r.value_cents == 4550
        assert r.occurred_at.year == 2026

    @pytest.mark.parametrize("row", [
        "nope",
        {"value": "x"},
        {"value": -5},
        {"value": 5, "status": "Roubada"},
        {"value": 5, "quantity": "dois"},
        {"value": 5, "occurred_at": "ontem"},
    ])
    def test_rejects(self, row):
        with pytest.raises(ValidationError):
            sale_record_from_dict(row)


class TestBackup:
    def test_export_shape(self, app, db_session, rep_maria, product_a):
        commit_atomically(lambda: deliver_maleta(representative_id=rep_maria.id, items={product_a.id: 2}))
        commit_atomically(lambda: record_adjustment(
            representative_id=rep_maria.id, target="SOLD", value_cents=500,
        ))

        data = export_dataset()
        assert set(data) == {"reps", "prods", "movs", "exportDate"}
        assert len(data["reps"]) == 1
        assert len(data["prods"]) == 1
        assert len(data["movs"]) == 2
        assert data["movs"][1]["product_id"] == MANUAL_ADJUSTMENT_PRODUCT
        assert data["exportDate"].endswith("Z")

    def test_round_trip(self, app, db_session, rep_maria, product_a):
        commit_atomically(lambda: deliver_maleta(representative_id=rep_maria.id, items={product_a.id: 2}))
        commit_atomically(lambda: record_adjustment(
            representative_id=rep_maria.id, target="COMMISSION", value_cents=-100,
        ))
        exported = json.loads(json.dumps(export_dataset()))

        counts = commit_atomically(lambda: restore_dataset(exported))
        assert counts == {"reps": 1, "prods": 1, "movs": 2}

        again = export_dataset()
        strip = lambda rows: [{k: v for k, v in r.items() if k not in ("created_at", "updated_at", "version_id")}
                              for r in rows]
        assert strip(again["reps"]) == strip(exported["reps"])
        assert strip(again["prods"]) == strip(exported["prods"])
        assert [m["type"] for m in again["movs"]] == [m["type"] for m in exported["movs"]]
        # stock is restored verbatim, not re-derived
        assert again["prods"][0]["stock"] == 8

    def test_bad_backup_changes_nothing(self, app, db_session, rep_maria, product_a):
        bad = {
            "reps": [{"id": 1, "name": "Nova"}],
            "prods": [],
            "movs": [{"id": 1, "representative_id": 99, "product_id": MANUAL_ADJUSTMENT_PRODUCT,
                      "type": "ADJUSTMENT", "quantity": 1, "unit_value_cents": 100,
                      "adjustment_target": "SOLD"}],
        }
        with pytest.raises(ValidationError):
            commit_atomically(lambda: restore_dataset(bad))

        names = [r.name for r in db.session.query(Representative).all()]
        assert names == ["Maria Souza"]
        assert db.session.query(Product).count() == 1

    @pytest.mark.parametrize("payload", [
        [],
        {"reps": [], "prods": []},
        {"reps": [{"name": "sem id"}], "prods": [], "movs": []},
        {"reps": [], "prods": [{"id": 1, "name": "X", "category": "Relógios"}], "movs": []},
        {"reps": [{"id": 1, "name": "A"}, {"id": 1, "name": "B"}], "prods": [], "movs": []},
    ])
    def test_restore_rejects(self, app, db_session, payload):
        with pytest.raises(ValidationError):
            restore_dataset(payload)

    def test_restore_clears_ledger(self, app, db_session, rep_maria, product_a):
        commit_atomically(lambda: deliver_maleta(representative_id=rep_maria.id, items={product_a.id: 1}))
        commit_atomically(lambda: restore_dataset({"reps": [], "prods": [], "movs": []}))
        assert db.session.query(Movement).count() == 0

    def test_load_backup_text(self):
        assert load_backup_text('{"reps": []}') == {"reps": []}
        with pytest.raises(ValidationError):
            load_backup_text("{not json")
