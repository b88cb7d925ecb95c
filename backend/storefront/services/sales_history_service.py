# Overview: Append-only purchase history and the reports built on it.

"""
Sales history service.

Every completed purchase (online checkout or POS sale with a known customer)
appends exactly one UserSalesHistory row. Rows are never updated, so the
cumulative profit that drives loyalty tiers is always a plain SUM.

Reports decorate recorded totals with a display-only tax line
(REPORT_TAX_RATE_BPS); stored amounts never include tax.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError
from ..models import Order, User, UserSalesHistory
from ..money import format_cents, with_tax
from ..time_utils import short_date, utcnow


def record_purchase(
    user_id: int,
    total_spent_cents: int,
    total_profit_cents: int,
    order_id: int | None = None,
    shop_order_id: int | None = None,
    purchase_date: datetime | None = None,
) -> UserSalesHistory:
    """Append one history row inside the caller's transaction."""
    if order_id is not None and shop_order_id is not None:
        raise ValueError("A purchase belongs to one channel only")

    history = UserSalesHistory(
        user_id=user_id,
        order_id=order_id,
        shop_order_id=shop_order_id,
        total_spent_cents=total_spent_cents,
        total_profit_cents=total_profit_cents,
        purchase_date=purchase_date or utcnow(),
    )
    db.session.add(history)
    db.session.flush()
    return history


def cumulative_profit(user_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(UserSalesHistory.total_profit_cents), 0))
        .filter(UserSalesHistory.user_id == user_id)
        .scalar()
    )
    return int(total or 0)


def cumulative_spent(user_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(UserSalesHistory.total_spent_cents), 0))
        .filter(UserSalesHistory.user_id == user_id)
        .scalar()
    )
    return int(total or 0)


def list_history(user_id: int) -> list[UserSalesHistory]:
    return (
        db.session.query(UserSalesHistory)
        .filter(UserSalesHistory.user_id == user_id)
        .order_by(UserSalesHistory.purchase_date.desc(), UserSalesHistory.id.desc())
        .all()
    )


def _tax_rate_bps() -> int:
    return int(current_app.config.get("REPORT_TAX_RATE_BPS", 1000))


def purchase_report(user_id: int) -> dict:
    """Customer-facing summary of every recorded purchase, both channels."""
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", {"user_id": user_id})

    rows = list_history(user_id)
    subtotal_cents = sum(r.total_spent_cents for r in rows)
    summary = with_tax(subtotal_cents, _tax_rate_bps())

    return {
        "user_id": user.id,
        "email": user.email,
        "tier": user.tier,
        "orders_count": len(rows),
        **summary,
        "purchases": [
            {
                "id": r.id,
                "channel": r.channel,
                "order_id": r.order_id,
                "shop_order_id": r.shop_order_id,
                "date": short_date(r.purchase_date),
                "amount_cents": r.total_spent_cents,
                "amount": format_cents(r.total_spent_cents),
            }
            for r in rows
        ],
    }


def order_history(user_id: int) -> list[dict]:
    """Online orders for a user, newest first, each with its tax breakdown."""
    orders = (
        db.session.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    rate = _tax_rate_bps()
    result = []
    for order in orders:
        data = order.to_dict()
        data["summary"] = with_tax(order.total_cents, rate)
        result.append(data)
    return result


def _margin_percent(profit_cents: int, spent_cents: int) -> str:
    if not spent_cents:
        return "0.00"
    pct = Decimal(profit_cents) * 100 / Decimal(spent_cents)
    return f"{pct.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):.2f}"


def owner_profit_report(top_n: int = 3) -> dict:
    """
    Per-customer profit leaderboard for the owner.

    Users are ordered by total profit, highest first; ties break on user id.
    """
    profit = func.sum(UserSalesHistory.total_profit_cents)
    spent = func.sum(UserSalesHistory.total_spent_cents)
    count = func.count(UserSalesHistory.id)

    rows = (
        db.session.query(User, profit, spent, count)
        .join(UserSalesHistory, UserSalesHistory.user_id == User.id)
        .group_by(User.id)
        .order_by(profit.desc(), User.id.asc())
        .all()
    )

    users = []
    for user, profit_cents, spent_cents, order_count in rows:
        profit_cents = int(profit_cents or 0)
        spent_cents = int(spent_cents or 0)
        users.append({
            "user_id": user.id,
            "email": user.email,
            "username": user.username,
            "tier": user.tier,
            "order_count": int(order_count),
            "total_profit_cents": profit_cents,
            "total_spent_cents": spent_cents,
            "total_profit": format_cents(profit_cents),
            "total_spent": format_cents(spent_cents),
            "margin_percent": _margin_percent(profit_cents, spent_cents),
        })

    total_profit = sum(u["total_profit_cents"] for u in users)
    total_spent = sum(u["total_spent_cents"] for u in users)

    return {
        "total_users": len(users),
        "users": users,
        "top_users": users[:top_n],
        "total_profit_cents": total_profit,
        "total_spent_cents": total_spent,
        "total_profit": format_cents(total_profit),
        "total_spent": format_cents(total_spent),
        "average_margin_percent": _margin_percent(total_profit, total_spent),
    }
