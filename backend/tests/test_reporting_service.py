# Overview: Pytest coverage for dashboard and financial report figures.

from hub.models.ledger import TYPE_DELIVERED, TYPE_SOLD
from hub.services.reporting_service import compute_dashboard_stats, compute_financial_breakdown
from hub.services.snapshots import MovementSnapshot, ProductSnapshot, RepresentativeSnapshot
from hub.services.summary_service import calculate_maleta_summaries


PRODUCTS = (
    ProductSnapshot(id=1, name="Brinco Gota", sku="BR-01", category="Brincos", price_cents=10000, stock=8),
    ProductSnapshot(id=2, name="Anel", sku=None, category="Anéis", price_cents=5000, stock=2),
    ProductSnapshot(id=3, name="Colar", sku=None, category="Pulseiras e Colares", price_cents=7000, stock=0),
)
REPS = (RepresentativeSnapshot(id=1, name="Maria", phone=None, is_active=True, maleta_status="IN_FIELD"),)


def mv(type_, product_id, qty, value):
    return MovementSnapshot(
        id=None, representative_id=1, product_id=product_id, type=type_, quantity=qty, unit_value_cents=value,
    )


MOVEMENTS = (
    mv(TYPE_DELIVERED, 1, 2, 10000),
    mv(TYPE_DELIVERED, 2, 3, 5000),
    mv(TYPE_SOLD, 1, 1, 12000),
    mv(TYPE_SOLD, 2, 1, 5000),
    mv(TYPE_SOLD, 99, 1, 3000),
)


class TestDashboard:
    def test_totals(self):
        summaries = calculate_maleta_summaries(MOVEMENTS, REPS)
        stats = compute_dashboard_stats(summaries, PRODUCTS, low_stock_threshold=2)

        assert stats["total_sold_cents"] == 20000
        assert stats["total_commission_cents"] == 6000
        assert stats["profit_cents"] == 14000
        assert stats["central_items"] == 10
        # Anel (2) and Colar (0) are at or below the threshold
        assert stats["low_stock_count"] == 2
        assert stats["low_stock_threshold"] == 2

    def test_empty(self):
        stats = compute_dashboard_stats([], [], low_stock_threshold=5)
        assert stats["total_sold_cents"] == 0
        assert stats["low_stock_count"] == 0


class TestFinancialBreakdown:
    def test_categories_and_turnover(self):
        summaries = calculate_maleta_summaries(MOVEMENTS, REPS)
        report = compute_financial_breakdown(MOVEMENTS, PRODUCTS, summaries)

        # the sale of a product no longer in the catalog counts in totals only
        assert report["sales_by_category"] == [
            {"category": "Brincos", "value_cents": 12000},
            {"category": "Anéis", "value_cents": 5000},
        ]
        assert report["stock_value_by_category"] == [
            {"category": "Brincos", "value_cents": 80000},
            {"category": "Anéis", "value_cents": 10000},
        ]
        assert report["total_delivered_cents"] == 35000
        assert report["total_sold_cents"] == 20000
        assert report["turnover_percentage"] == 57.1

    def test_turnover_without_deliveries(self):
        report = compute_financial_breakdown([], PRODUCTS, [])
        assert report["turnover_percentage"] == 0.0
        assert report["sales_by_category"] == []


class TestReportsFromDatabase:
    def test_dashboard_reads_current_state(self, app, db_session, rep_maria, product_a, product_b):
        from hub.services.ledger_service import deliver_maleta
        from hub.services.reporting_service import dashboard_stats
        from hub.services.state_store import commit_atomically

        commit_atomically(lambda: deliver_maleta(representative_id=rep_maria.id, items={product_b.id: 1}))
        stats = dashboard_stats()

        assert stats["central_items"] == 14
        # product_b is down to 4 pieces, under the default threshold of 5
        assert stats["low_stock_count"] == 1
        assert stats["total_sold_cents"] == 0
