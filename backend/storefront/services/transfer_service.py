# backend/storefront/services/transfer_service.py
"""
Owner -> shop stock transfers.

Units leave the owner ledger and arrive in the shop's stock row in one
transaction, so owner + shop quantity is conserved for every transfer and a
failed transfer changes nothing.

Two entry points share the same movement:
- transfer():            owner/admin pushes stock (kind TRANSFER)
- restock_from_owner():  proprietor pulls stock (kind RESTOCK); also
                         refreshes the shop's price/cost/source snapshot
                         from the owner record on top-ups
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError, ValidationError, require_positive_quantity
from ..models import (
    Shop,
    ShopStock,
    ShopTransfer,
    StockItem,
    TRANSFER_KIND_RESTOCK,
    TRANSFER_KIND_TRANSFER,
)
from ..money import MAX_PRICE_CENTS
from .concurrency import conditional_increment, lock_for_update, run_in_transaction, take_units


def _snapshot(shop_stock: ShopStock, item: StockItem) -> None:
    """Copy owner pricing onto the shop row by value."""
    shop_stock.price_override_cents = item.price_cents
    shop_stock.cost_price_cents = item.cost_price_cents
    shop_stock.source = item.source


def _move_units(
    shop_id: int,
    stock_item_id: int,
    quantity,
    performed_by_user_id: int | None,
    kind: str,
) -> ShopTransfer:
    quantity = require_positive_quantity(quantity)

    shop = db.session.get(Shop, shop_id)
    if shop is None:
        raise NotFoundError("Shop not found", {"shop_id": shop_id})

    item = lock_for_update(db.session.query(StockItem).filter_by(id=stock_item_id)).first()
    if item is None:
        raise NotFoundError("Stock item not found", {"stock_item_id": stock_item_id})

    take_units(StockItem, item.id, quantity, item.title)

    shop_stock = db.session.query(ShopStock).filter_by(shop_id=shop.id, stock_item_id=item.id).first()
    if shop_stock is None:
        shop_stock = ShopStock(shop_id=shop.id, stock_item_id=item.id, quantity=0)
        _snapshot(shop_stock, item)
        db.session.add(shop_stock)
        db.session.flush()
    elif kind == TRANSFER_KIND_RESTOCK:
        _snapshot(shop_stock, item)
        db.session.flush()

    conditional_increment(ShopStock, shop_stock.id, quantity)

    log = ShopTransfer(
        shop_id=shop.id,
        stock_item_id=item.id,
        quantity=quantity,
        kind=kind,
        performed_by_user_id=performed_by_user_id,
    )
    db.session.add(log)
    db.session.flush()

    current_app.logger.info(
        "%s of %s x item %s to shop %s (owner remaining %s)",
        kind, quantity, item.id, shop.id, item.quantity,
    )
    return log


def transfer(
    shop_id: int,
    stock_item_id: int,
    quantity,
    performed_by_user_id: int | None = None,
) -> ShopTransfer:
    """
    Move units from the owner ledger into a shop.

    Raises:
        InvalidQuantityError: quantity <= 0
        NotFoundError: unknown shop or stock item
        InsufficientStockError: owner holds fewer units than requested
    """
    def _op():
        return _move_units(shop_id, stock_item_id, quantity, performed_by_user_id, TRANSFER_KIND_TRANSFER)

    return run_in_transaction(_op)


def restock_from_owner(
    shop_id: int,
    stock_item_id: int,
    quantity,
    performed_by_user_id: int | None = None,
) -> ShopTransfer:
    """Proprietor-side transfer; same rules, and re-inherits owner pricing."""
    def _op():
        return _move_units(shop_id, stock_item_id, quantity, performed_by_user_id, TRANSFER_KIND_RESTOCK)

    return run_in_transaction(_op)


def list_transfers(shop_id: int | None = None, limit: int | None = None) -> list[ShopTransfer]:
    query = db.session.query(ShopTransfer)
    if shop_id is not None:
        query = query.filter(ShopTransfer.shop_id == shop_id)
    query = query.order_by(ShopTransfer.created_at.desc(), ShopTransfer.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def set_price_override(shop_id: int, shop_stock_id: int, price_cents) -> ShopStock:
    """
    Set (or clear with None) a shop's local selling price.

    Only future POS sales see the new price.
    """
    if price_cents is not None:
        if isinstance(price_cents, bool) or not isinstance(price_cents, int):
            raise ValidationError("price_override_cents must be an integer")
        if price_cents < 0 or price_cents > MAX_PRICE_CENTS:
            raise ValidationError("price_override_cents out of range")

    def _op():
        shop_stock = db.session.query(ShopStock).filter_by(id=shop_stock_id, shop_id=shop_id).first()
        if shop_stock is None:
            raise NotFoundError("Shop stock not found", {"shop_stock_id": shop_stock_id})
        shop_stock.price_override_cents = price_cents
        db.session.flush()
        return shop_stock

    return run_in_transaction(_op)
