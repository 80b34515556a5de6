# Overview: Dashboard figures derived from summaries, the catalog and the ledger.

from __future__ import annotations

from typing import Iterable

from flask import current_app, has_app_context

from ..models.catalog import CATEGORIES
from ..models.ledger import TYPE_SOLD
from .commission_policy import CommissionPolicy, get_commission_policy
from .snapshots import load_movements, load_products, load_representatives
from .summary_service import calculate_maleta_summaries

DEFAULT_LOW_STOCK_THRESHOLD = 5


def _low_stock_threshold() -> int:
    if not has_app_context():
        return DEFAULT_LOW_STOCK_THRESHOLD
    return current_app.config.get("LOW_STOCK_THRESHOLD", DEFAULT_LOW_STOCK_THRESHOLD)


def compute_dashboard_stats(summaries: Iterable, products: Iterable, *, low_stock_threshold: int) -> dict:
    summaries, products = tuple(summaries), tuple(products)
    total_sold = sum(s.sold_cents for s in summaries)
    total_commission = sum(s.commission_cents for s in summaries)
    return {
        "total_sold_cents": total_sold,
        "total_commission_cents": total_commission,
        "profit_cents": total_sold - total_commission,
        "central_items": sum(p.stock for p in products),
        "low_stock_count": sum(1 for p in products if p.stock <= low_stock_threshold),
        "low_stock_threshold": low_stock_threshold,
    }


def compute_financial_breakdown(movements: Iterable, products: Iterable, summaries: Iterable) -> dict:
    """
    Sold value per category (by the product's current category), central stock
    value per category, and turnover = sold / delivered * 100.

    Categories with a zero total are omitted; movements whose product left the
    catalog do not count towards any category.
    """
    movements, products, summaries = tuple(movements), tuple(products), tuple(summaries)
    category_of = {p.id: p.category for p in products}

    sold_by_category = dict.fromkeys(CATEGORIES, 0)
    for m in movements:
        if m.type != TYPE_SOLD:
            continue
        category = category_of.get(m.product_id)
        if category in sold_by_category:
            sold_by_category[category] += m.unit_value_cents * m.quantity

    stock_by_category = dict.fromkeys(CATEGORIES, 0)
    for p in products:
        if p.category in stock_by_category:
            stock_by_category[p.category] += p.price_cents * p.stock

    total_sold = sum(s.sold_cents for s in summaries)
    total_commission = sum(s.commission_cents for s in summaries)
    total_delivered = sum(s.total_delivered_cents for s in summaries)
    turnover = round(total_sold / total_delivered * 100, 1) if total_delivered > 0 else 0.0

    return {
        "sales_by_category": [
            {"category": c, "value_cents": v} for c, v in sold_by_category.items() if v > 0
        ],
        "stock_value_by_category": [
            {"category": c, "value_cents": v} for c, v in stock_by_category.items() if v > 0
        ],
        "total_sold_cents": total_sold,
        "total_commission_cents": total_commission,
        "profit_cents": total_sold - total_commission,
        "total_delivered_cents": total_delivered,
        "turnover_percentage": turnover,
    }


def _current_summaries(movements, policy: CommissionPolicy | None = None):
    return calculate_maleta_summaries(movements, load_representatives(), policy or get_commission_policy())


def dashboard_stats() -> dict:
    movements = load_movements()
    return compute_dashboard_stats(
        _current_summaries(movements),
        load_products(),
        low_stock_threshold=_low_stock_threshold(),
    )


def financial_breakdown() -> dict:
    movements = load_movements()
    return compute_financial_breakdown(movements, load_products(), _current_summaries(movements))
