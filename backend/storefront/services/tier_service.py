# Overview: Loyalty tier derivation from cumulative sales profit.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError
from ..models import User, TIER_BRONZE, TIER_SILVER, TIER_GOLD, TIER_PLATINUM
from .sales_history_service import cumulative_profit


# (minimum cumulative profit in cents, tier), highest first
TIER_THRESHOLDS = (
    (1_000_000, TIER_PLATINUM),
    (500_000, TIER_GOLD),
    (200_000, TIER_SILVER),
)

# Discount in basis points granted at the POS for each tier
TIER_DISCOUNT_BPS = {
    TIER_BRONZE: 0,
    TIER_SILVER: 500,
    TIER_GOLD: 1000,
    TIER_PLATINUM: 1500,
}


def tier_for_profit(profit_cents: int) -> str:
    """Map cumulative profit to a tier. Thresholds are inclusive lower bounds."""
    for minimum, tier in TIER_THRESHOLDS:
        if profit_cents >= minimum:
            return tier
    return TIER_BRONZE


def discount_bps(tier: str | None) -> int:
    return TIER_DISCOUNT_BPS.get(tier or TIER_BRONZE, 0)


def discount_percent(tier: str | None) -> int:
    return discount_bps(tier) // 100


def recompute_tier(user_id: int) -> str:
    """
    Recompute and store a user's tier from their sales history.

    Runs inside the caller's transaction and does not commit. The tier field
    is assigned once, and only when the computed value differs.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", {"user_id": user_id})

    new_tier = tier_for_profit(cumulative_profit(user_id))
    if user.tier != new_tier:
        current_app.logger.info("Tier change for user %s: %s -> %s", user_id, user.tier, new_tier)
        user.tier = new_tier
    return new_tier


def recompute_all_tiers() -> dict[str, int]:
    """Recompute every user's tier. Returns counts of users per resulting tier."""
    counts = {tier: 0 for tier in TIER_DISCOUNT_BPS}
    for (user_id,) in db.session.query(User.id).order_by(User.id).all():
        counts[recompute_tier(user_id)] += 1
    return counts
