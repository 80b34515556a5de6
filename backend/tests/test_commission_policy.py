# Overview: Pytest coverage for the two-tier commission policy.

import pytest

from hub.services.commission_policy import CommissionPolicy, apply_rate, get_commission_policy


class TestCommissionTiers:
    """Whole-amount step function at R$ 5.000,00."""

    @pytest.mark.parametrize("total, expected_bps", [
        (0, 3000),
        (200000, 3000),
        (499999, 3000),
        (500000, 4000),
        (500001, 4000),
        (10_000_000, 4000),
        (-1000, 3000),
    ])
    def test_rate_for_total(self, total, expected_bps):
        assert CommissionPolicy().rate_bps(total) == expected_bps

    def test_threshold_is_inclusive(self):
        policy = CommissionPolicy()
        assert policy.commission_cents(500000) == 200000
        assert policy.commission_cents(499999) == 150000

    def test_rate_applies_to_whole_amount_not_marginal(self):
        """R$ 6.000,00 pays 40% of everything, not 30% + 40% of the excess."""
        assert CommissionPolicy().commission_cents(600000) == 240000

    def test_owner_share_matches_complementary_rate(self):
        policy = CommissionPolicy()
        for total in (1, 333, 12345, 499999, 500000, 777777):
            owner = total - policy.commission_cents(total)
            rate = policy.rate_bps(total)
            assert abs(owner * 10000 - total * (10000 - rate)) <= 5000


class TestApplyRate:
    def test_rounds_half_up(self):
        # 5 * 30% = 1.5 cents -> 2
        assert apply_rate(5, 3000) == 2
        # 1 * 30% = 0.3 cents -> 0
        assert apply_rate(1, 3000) == 0

    def test_negative_amounts_round_away_from_zero(self):
        assert apply_rate(-5, 3000) == -2


class TestConfiguredPolicy:
    def test_defaults_outside_app_context(self):
        assert get_commission_policy() == CommissionPolicy()

    def test_reads_app_config(self, app):
        with app.app_context():
            app.config["COMMISSION_THRESHOLD_CENTS"] = 100000
            try:
                policy = get_commission_policy()
                assert policy.threshold_cents == 100000
                assert policy.rate_bps(100000) == 4000
            finally:
                app.config["COMMISSION_THRESHOLD_CENTS"] = 500000
