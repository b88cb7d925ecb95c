# Overview: Owner inventory ledger: item CRUD, quantity decrements and valuation.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError
from ..models import StockItem
from ..money import format_cents
from ..validation import ModelValidationPolicy, enforce_rules_stock_item, validate_payload
from .concurrency import flush_versioned, run_in_transaction, take_units


STOCK_ITEM_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "title", "category", "price_cents", "cost_price_cents", "original_price_cents",
        "quantity", "is_new", "is_on_sale", "short_description", "image_url",
        "average_rating", "review_count", "source",
    }),
    required_on_create=frozenset({"title", "category", "price_cents"}),
)


def list_items(category: str | None = None, search: str | None = None) -> list[StockItem]:
    query = db.session.query(StockItem)
    if category:
        query = query.filter(StockItem.category == category)
    if search:
        query = query.filter(db.func.lower(StockItem.title).contains(search.strip().lower()))
    return query.order_by(StockItem.category.asc(), StockItem.title.asc(), StockItem.id.asc()).all()


def list_categories() -> list[str]:
    rows = db.session.query(StockItem.category).distinct().order_by(StockItem.category).all()
    return [r[0] for r in rows]


def get_item(item_id: int) -> StockItem:
    item = db.session.get(StockItem, item_id)
    if item is None:
        raise NotFoundError("Stock item not found", {"stock_item_id": item_id})
    return item


def create_item(payload: dict) -> StockItem:
    patch = validate_payload(model=StockItem, payload=payload, policy=STOCK_ITEM_POLICY, partial=False)
    enforce_rules_stock_item(patch)

    def _op():
        item = StockItem(**patch)
        db.session.add(item)
        db.session.flush()
        return item

    return run_in_transaction(_op)


def update_item(item_id: int, payload: dict) -> StockItem:
    """
    Patch any subset of writable fields.

    Price and cost change independently; existing shop stock snapshots
    and recorded orders are unaffected.
    """
    patch = validate_payload(model=StockItem, payload=payload, policy=STOCK_ITEM_POLICY, partial=True)
    enforce_rules_stock_item(patch)

    def _op():
        item = get_item(item_id)
        for key, value in patch.items():
            setattr(item, key, value)
        flush_versioned(StockItem, item_id)
        return item

    return run_in_transaction(_op)


def delete_item(item_id: int) -> None:
    """Delete an item together with every shop's stock row and transfer log for it."""
    def _op():
        item = get_item(item_id)
        db.session.delete(item)
        flush_versioned(StockItem, item_id)

    run_in_transaction(_op)


def decrement_quantity(item_id: int, quantity: int) -> StockItem:
    """
    Remove units from the owner ledger inside the caller's transaction.

    Raises InvalidQuantityError, NotFoundError or InsufficientStockError.
    """
    item = get_item(item_id)
    take_units(StockItem, item_id, quantity, item.title)
    return item


def valuation_summary() -> dict:
    """Inventory value at cost, potential revenue at price, and the difference."""
    value, revenue, units, count = db.session.query(
        db.func.coalesce(db.func.sum(StockItem.cost_price_cents * StockItem.quantity), 0),
        db.func.coalesce(db.func.sum(StockItem.price_cents * StockItem.quantity), 0),
        db.func.coalesce(db.func.sum(StockItem.quantity), 0),
        db.func.count(StockItem.id),
    ).one()
    value, revenue = int(value), int(revenue)
    return {
        "item_count": int(count),
        "total_units": int(units),
        "inventory_value_cents": value,
        "potential_revenue_cents": revenue,
        "potential_profit_cents": revenue - value,
        "inventory_value": format_cents(value),
        "potential_revenue": format_cents(revenue),
        "potential_profit": format_cents(revenue - value),
    }
