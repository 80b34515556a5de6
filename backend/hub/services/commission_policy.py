# Overview: Commission tier policy shared by maleta summaries and cycle settlement.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app, has_app_context

"""
Commission Policy (authoritative)

- Two-tier step function on the total sold value:
    rate = base     if total < threshold
    rate = premium  if total >= threshold   (inclusive)
- The rate applies to the WHOLE total (not marginal brackets).
- Canonical defaults: 30% below R$ 5.000,00, 40% at or above.
- Total over every integer input: zero and negative totals get the base rate.
- Commission cents = total * bps / 10000, rounded half-up to the cent.
"""

BPS_DENOMINATOR = 10_000

DEFAULT_THRESHOLD_CENTS = 500_000
DEFAULT_BASE_RATE_BPS = 3_000
DEFAULT_PREMIUM_RATE_BPS = 4_000


def apply_rate(amount_cents: int, rate_bps: int) -> int:
    """amount * rate, rounded half-up (away from zero for negatives)."""
    product = amount_cents * rate_bps
    sign = -1 if product < 0 else 1
    return sign * ((abs(product) + BPS_DENOMINATOR // 2) // BPS_DENOMINATOR)


@dataclass(frozen=True)
class CommissionPolicy:
    threshold_cents: int = DEFAULT_THRESHOLD_CENTS
    base_rate_bps: int = DEFAULT_BASE_RATE_BPS
    premium_rate_bps: int = DEFAULT_PREMIUM_RATE_BPS

    def rate_bps(self, total_sold_cents: int) -> int:
        if total_sold_cents >= self.threshold_cents:
            return self.premium_rate_bps
        return self.base_rate_bps

    def commission_cents(self, total_sold_cents: int) -> int:
        return apply_rate(total_sold_cents, self.rate_bps(total_sold_cents))

    def to_dict(self) -> dict:
        return {
            "threshold_cents": self.threshold_cents,
            "base_rate_bps": self.base_rate_bps,
            "premium_rate_bps": self.premium_rate_bps,
        }


def get_commission_policy() -> CommissionPolicy:
    """Policy configured on the current app, or the canonical defaults outside one."""
    if not has_app_context():
        return CommissionPolicy()
    cfg = current_app.config
    return CommissionPolicy(
        threshold_cents=cfg.get("COMMISSION_THRESHOLD_CENTS", DEFAULT_THRESHOLD_CENTS),
        base_rate_bps=cfg.get("COMMISSION_BASE_RATE_BPS", DEFAULT_BASE_RATE_BPS),
        premium_rate_bps=cfg.get("COMMISSION_PREMIUM_RATE_BPS", DEFAULT_PREMIUM_RATE_BPS),
    )
