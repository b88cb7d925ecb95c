"""
Tier engine tests.

Verifies:
- Threshold mapping is a step function with inclusive lower bounds
- Discounts per tier
- Recompute writes only on change and is idempotent
"""

import pytest

from storefront.errors import NotFoundError
from storefront.models import TIER_BRONZE, TIER_GOLD, TIER_PLATINUM, TIER_SILVER
from storefront.services import sales_history_service, tier_service


@pytest.mark.parametrize(
    "profit_cents,expected",
    [
        (0, TIER_BRONZE),
        (-500, TIER_BRONZE),
        (199_999, TIER_BRONZE),
        (200_000, TIER_SILVER),
        (499_999, TIER_SILVER),
        (500_000, TIER_GOLD),
        (999_999, TIER_GOLD),
        (1_000_000, TIER_PLATINUM),
        (1_000_001, TIER_PLATINUM),
    ],
)
def test_tier_for_profit_boundaries(profit_cents, expected):
    assert tier_service.tier_for_profit(profit_cents) == expected


def test_tier_for_profit_is_monotonic():
    order = [TIER_BRONZE, TIER_SILVER, TIER_GOLD, TIER_PLATINUM]
    ranks = [order.index(tier_service.tier_for_profit(p)) for p in range(0, 1_200_000, 25_000)]
    assert ranks == sorted(ranks)


def test_discount_rates():
    assert tier_service.discount_bps(TIER_BRONZE) == 0
    assert tier_service.discount_bps(TIER_SILVER) == 500
    assert tier_service.discount_bps(TIER_GOLD) == 1000
    assert tier_service.discount_bps(TIER_PLATINUM) == 1500
    assert tier_service.discount_percent(TIER_GOLD) == 10
    assert tier_service.discount_bps(None) == 0


class TestRecomputeTier:

    def test_sums_all_history(self, db_session, customer):
        sales_history_service.record_purchase(customer.id, 100_000, 150_000)
        sales_history_service.record_purchase(customer.id, 80_000, 60_000, shop_order_id=None)
        db_session.commit()

        assert tier_service.recompute_tier(customer.id) == TIER_SILVER
        db_session.commit()
        assert customer.tier == TIER_SILVER

    def test_no_history_is_bronze(self, db_session, customer):
        assert tier_service.recompute_tier(customer.id) == TIER_BRONZE

    def test_unchanged_tier_is_not_written(self, db_session, customer):
        sales_history_service.record_purchase(customer.id, 600_000, 520_000)
        tier_service.recompute_tier(customer.id)
        db_session.commit()

        assert tier_service.recompute_tier(customer.id) == TIER_GOLD
        assert customer not in db_session.dirty

    def test_idempotent(self, db_session, customer):
        sales_history_service.record_purchase(customer.id, 2_000_000, 1_000_000)
        first = tier_service.recompute_tier(customer.id)
        db_session.commit()
        second = tier_service.recompute_tier(customer.id)
        db_session.commit()

        assert first == second == TIER_PLATINUM
        assert customer.tier == TIER_PLATINUM

    def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            tier_service.recompute_tier(999_999)

    def test_recompute_all(self, db_session, make_user):
        rich = make_user("rich@example.com")
        make_user("new@example.com")
        sales_history_service.record_purchase(rich.id, 900_000, 510_000)
        db_session.commit()

        counts = tier_service.recompute_all_tiers()
        db_session.commit()

        assert counts[TIER_GOLD] == 1
        assert rich.tier == TIER_GOLD
