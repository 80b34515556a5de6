# Overview: Pytest coverage for the ledger-derived maleta inventory projection.

from hub.models.ledger import TYPE_DELIVERED, TYPE_RESTOCKED, TYPE_SOLD, TYPE_RETURNED, TYPE_ADJUSTMENT, TARGET_SOLD
from hub.services.inventory_service import UNKNOWN_PRODUCT_NAME, on_hand_by_product, project_maleta
from hub.services.snapshots import MovementSnapshot, ProductSnapshot


CATALOG = (
    ProductSnapshot(id=1, name="Brinco Gota", sku="BR-01", category="Brincos", price_cents=10000, stock=3),
    ProductSnapshot(id=2, name="Anel Solitário", sku="AN-01", category="Anéis", price_cents=5000, stock=0),
)


def mv(type_, product_id, qty, value=0, rep_id=1):
    return MovementSnapshot(
        id=None,
        representative_id=rep_id,
        product_id=product_id,
        type=type_,
        quantity=qty,
        unit_value_cents=value,
    )


class TestOnHand:
    def test_signed_quantities(self):
        movements = [
            mv(TYPE_DELIVERED, 1, 5),
            mv(TYPE_RESTOCKED, 1, 2),
            mv(TYPE_SOLD, 1, 3),
            mv(TYPE_RETURNED, 1, 1),
        ]
        assert on_hand_by_product(movements, 1) == {1: 3}

    def test_adjustments_move_no_pieces(self):
        adj = MovementSnapshot(
            id=None, representative_id=1, product_id=None, type=TYPE_ADJUSTMENT,
            quantity=1, unit_value_cents=500, adjustment_target=TARGET_SOLD,
        )
        assert on_hand_by_product([adj], 1) == {}


class TestProjection:
    def test_valuation_uses_current_catalog_price(self):
        # delivered at R$ 80,00, catalog now says R$ 100,00
        inv = project_maleta([mv(TYPE_DELIVERED, 1, 2, value=8000)], CATALOG, 1)

        assert len(inv.items) == 1
        item = inv.items[0]
        assert item.product_name == "Brinco Gota"
        assert item.product_code == "BR-01"
        assert item.unit_price_cents == 10000
        assert inv.total_value_cents == 20000
        assert inv.total_quantity == 2

    def test_zero_rows_are_excluded(self):
        movements = [
            mv(TYPE_DELIVERED, 1, 2),
            mv(TYPE_SOLD, 1, 2),
            mv(TYPE_DELIVERED, 2, 1),
        ]
        inv = project_maleta(movements, CATALOG, 1)
        assert [i.product_id for i in inv.items] == [2]

    def test_unknown_product_is_named_and_priced_zero(self):
        inv = project_maleta([mv(TYPE_DELIVERED, 99, 4, value=7000)], CATALOG, 1)
        item = inv.items[0]
        assert item.product_name == UNKNOWN_PRODUCT_NAME
        assert item.unit_price_cents == 0
        assert item.quantity == 4
        assert inv.total_value_cents == 0

    def test_other_maletas_are_ignored(self):
        inv = project_maleta([mv(TYPE_DELIVERED, 1, 4, rep_id=2)], CATALOG, 1)
        assert inv.items == ()

    def test_to_dict(self):
        data = project_maleta([mv(TYPE_DELIVERED, 2, 3)], CATALOG, 1).to_dict()
        assert data["representative_id"] == 1
        assert data["total_quantity"] == 3
        assert data["total_value_cents"] == 15000
        assert data["items"][0]["category"] == "Anéis"


class TestOnHandQuery:
    def test_sql_aggregate_matches_projection(self, app, db_session, rep_maria, product_a):
        from hub.services.inventory_service import get_on_hand_quantity, get_representative_inventory
        from hub.services.ledger_service import append_movement, deliver_maleta
        from hub.services.state_store import commit_atomically

        commit_atomically(lambda: deliver_maleta(representative_id=rep_maria.id, items={product_a.id: 4}))
        commit_atomically(lambda: append_movement(
            representative_id=rep_maria.id, type=TYPE_RETURNED, product_id=product_a.id, quantity=1,
        ))

        assert get_on_hand_quantity(rep_maria.id, product_a.id) == 3
        inv = get_representative_inventory(rep_maria.id)
        assert inv.total_quantity == 3
        assert inv.total_value_cents == 30000
