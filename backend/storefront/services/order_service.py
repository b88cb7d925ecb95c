# backend/storefront/services/order_service.py
"""
Order engine: online checkout and in-shop POS sales.

Both channels run as a single transaction: stock decrements, the order
record, the purchase history row and the tier recompute either all land or
none do. Every decrement is a conditional UPDATE, so validation and
decrement cannot be separated by a concurrent request.

Online checkout draws on the owner ledger at the owner's current price.
POS sales draw on the shop's own stock at the shop price (local override,
else owner price) and apply the customer's loyalty discount.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..errors import (
    InsufficientStockError,
    NoItemsSelectedError,
    NotFoundError,
    ValidationError,
)
from ..models import (
    Order,
    OrderItem,
    SessionToken,
    Shop,
    ShopOrder,
    ShopOrderItem,
    ShopStock,
    StockItem,
    User,
    ROLE_USER,
)
from ..money import format_cents, percent_of, with_tax
from ..time_utils import utcnow
from . import auth_service, tier_service
from .cart_service import load_cart
from .concurrency import run_in_transaction, take_units
from .sales_history_service import record_purchase
from .session_service import store_cart_payload


# ---------------------------------------------------------------------------
# Online checkout
# ---------------------------------------------------------------------------

def checkout(session: SessionToken, user: User) -> dict:
    """
    Turn the session cart into an Order.

    Every line is checked against the owner's current quantity before any
    stock moves; the first short line aborts the whole checkout and names
    the item. The cart is emptied in the same commit as the order.

    Raises:
        NoItemsSelectedError: empty cart
        NotFoundError: a cart line points at a deleted item
        InsufficientStockError: owner quantity below a requested quantity
    """
    cart = load_cart(session)
    if cart.is_empty:
        raise NoItemsSelectedError("Your cart is empty")

    def _op():
        items: dict[int, StockItem] = {}
        for line in cart.items:
            item = db.session.get(StockItem, line.stock_item_id)
            if item is None:
                raise NotFoundError(
                    f"{line.title} is no longer available",
                    {"stock_item_id": line.stock_item_id},
                )
            if item.quantity < line.quantity:
                raise InsufficientStockError(
                    f"Not enough stock for {item.title}",
                    {
                        "stock_item_id": item.id,
                        "title": item.title,
                        "available": item.quantity,
                        "requested": line.quantity,
                    },
                )
            items[item.id] = item

        now = utcnow()
        order = Order(user_id=user.id, total_cents=0, created_at=now)
        total_cents = 0
        profit_cents = 0

        for line in cart.items:
            item = items[line.stock_item_id]
            unit_price = item.price_cents
            order.items.append(OrderItem(
                stock_item_id=item.id,
                title=item.title,
                quantity=line.quantity,
                unit_price_cents=unit_price,
            ))
            total_cents += unit_price * line.quantity
            profit_cents += (unit_price - (item.cost_price_cents or 0)) * line.quantity
            take_units(StockItem, item.id, line.quantity, item.title)

        order.total_cents = total_cents
        db.session.add(order)
        db.session.flush()

        record_purchase(
            user_id=user.id,
            total_spent_cents=total_cents,
            total_profit_cents=profit_cents,
            order_id=order.id,
            purchase_date=now,
        )
        tier = tier_service.recompute_tier(user.id)
        store_cart_payload(session, [])
        return order, profit_cents, tier

    order, profit_cents, tier = run_in_transaction(_op)

    return {
        "order": order.to_dict(),
        "profit_cents": profit_cents,
        "tier": tier,
        "summary": with_tax(order.total_cents, int(current_app.config.get("REPORT_TAX_RATE_BPS", 1000))),
        "message": "Purchase successful",
    }


def get_order(order_id: int, user: User | None = None) -> Order:
    order = db.session.get(Order, order_id)
    if order is None or (user is not None and order.user_id != user.id):
        raise NotFoundError("Order not found", {"order_id": order_id})
    return order


# ---------------------------------------------------------------------------
# POS
# ---------------------------------------------------------------------------

@dataclass
class PosSaleResult:
    shop_order: ShopOrder
    profit_cents: int
    customer: User | None = None
    discount_bps: int = 0
    warnings: list[str] = field(default_factory=list)
    skipped_item_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "shop_order": self.shop_order.to_dict(),
            "profit_cents": self.profit_cents,
            "customer": self.customer.to_dict() if self.customer else None,
            "discount_percent": self.discount_bps // 100,
            "warnings": list(self.warnings),
            "skipped_item_ids": list(self.skipped_item_ids),
            "message": "Sale completed successfully",
        }


def _parse_quantities(quantities) -> list[tuple[int, int]]:
    """Normalize {stock_item_id: qty} from JSON (string keys) and drop qty <= 0."""
    if not isinstance(quantities, dict):
        raise ValidationError("quantities must be an object of {stock_item_id: quantity}")

    parsed = []
    for raw_id, raw_qty in quantities.items():
        try:
            item_id = int(raw_id)
            qty = int(raw_qty or 0)
        except (TypeError, ValueError):
            raise ValidationError("Stock item ids and quantities must be integers", {"stock_item_id": raw_id})
        if isinstance(raw_qty, float) and not raw_qty.is_integer():
            raise ValidationError("Quantities must be whole numbers", {"stock_item_id": raw_id})
        if qty > 0:
            parsed.append((item_id, qty))
    return sorted(parsed)


def _guest_email(identifier: str) -> str:
    return f"{identifier}@{current_app.config.get('GUEST_EMAIL_DOMAIN', 'guest.local')}"


def _customer_key(identifier: str | None) -> tuple[str | None, str | None]:
    """Return (lookup email, phone) for an email-or-phone identifier."""
    identifier = (identifier or "").strip()
    if not identifier:
        return None, None
    if "@" in identifier:
        return identifier.lower(), None
    return _guest_email(identifier).lower(), identifier


def find_customer(identifier: str | None) -> User | None:
    email, _ = _customer_key(identifier)
    if email is None:
        return None
    raw = identifier.strip()
    return db.session.query(User).filter(db.or_(User.email == email, User.username == raw)).first()


def resolve_customer(identifier: str | None, signup_new: bool = False) -> User | None:
    """
    Find the customer for a POS sale, optionally signing up a walk-in.

    A new guest is keyed by the given email, or {phone}@guest.local, and
    gets the base User role and the configured default password.
    """
    customer = find_customer(identifier)
    if customer is not None or not signup_new:
        return customer

    email, _ = _customer_key(identifier)
    if email is None:
        return None
    customer = auth_service.create_user(
        email=email,
        password=current_app.config.get("GUEST_DEFAULT_PASSWORD", "Guest@1234"),
        role_name=ROLE_USER,
        is_guest=True,
    )
    current_app.logger.info("Signed up walk-in customer %s at POS", customer.email)
    return customer


def lookup_customer_tier(identifier: str | None) -> dict:
    customer = find_customer(identifier)
    if customer is None:
        return {"found": False, "tier": None, "discount_percent": 0}
    return {
        "found": True,
        "user_id": customer.id,
        "email": customer.email,
        "tier": customer.tier,
        "discount_percent": tier_service.discount_percent(customer.tier),
    }


def process_pos_sale(
    shop: Shop,
    quantities,
    performed_by: User | None = None,
    customer_identifier: str | None = None,
    signup_new: bool = False,
) -> PosSaleResult:
    """
    Sell from a shop's own stock.

    Lines with quantity <= 0 are ignored. A line for an item the shop has
    never stocked is skipped and reported in skipped_item_ids. A line asking
    for more than the shop holds aborts the sale. Lines left at or below
    LOW_STOCK_THRESHOLD add a warning but never block.

    Raises:
        NoItemsSelectedError: no line survived
        InsufficientStockError: shop quantity below a requested quantity
    """
    lines = _parse_quantities(quantities)
    threshold = int(current_app.config.get("LOW_STOCK_THRESHOLD", 2))
    _, customer_phone = _customer_key(customer_identifier)

    def _op():
        warnings: list[str] = []
        skipped: list[int] = []
        order_lines: list[ShopOrderItem] = []
        subtotal_cents = 0
        profit_cents = 0

        for stock_item_id, qty in lines:
            shop_stock = db.session.query(ShopStock).filter_by(
                shop_id=shop.id, stock_item_id=stock_item_id
            ).first()
            if shop_stock is None:
                current_app.logger.warning(
                    "POS sale at shop %s skipped item %s: not stocked", shop.id, stock_item_id
                )
                skipped.append(stock_item_id)
                continue

            item = shop_stock.stock_item
            unit_price = shop_stock.unit_price_cents
            unit_cost = item.cost_price_cents or 0

            take_units(ShopStock, shop_stock.id, qty, item.title)

            order_lines.append(ShopOrderItem(
                stock_item_id=item.id,
                title=item.title,
                quantity=qty,
                unit_price_cents=unit_price,
                unit_cost_cents=unit_cost,
            ))
            subtotal_cents += unit_price * qty
            profit_cents += (unit_price - unit_cost) * qty

            if shop_stock.quantity <= threshold:
                warnings.append(f"Low stock: only {shop_stock.quantity} left for {item.title}")
                current_app.logger.warning(
                    "Low stock at shop %s: item %s has %s left", shop.id, item.id, shop_stock.quantity
                )

        if not order_lines:
            raise NoItemsSelectedError("No items selected for sale", {"skipped_item_ids": skipped})

        customer = resolve_customer(customer_identifier, signup_new=signup_new)
        tier = customer.tier if customer else None
        rate_bps = tier_service.discount_bps(tier) if customer else 0
        discount_cents = percent_of(subtotal_cents, rate_bps)

        now = utcnow()
        shop_order = ShopOrder(
            shop_id=shop.id,
            customer_user_id=customer.id if customer else None,
            customer_phone=customer_phone,
            subtotal_cents=subtotal_cents,
            discount_cents=discount_cents,
            total_cents=subtotal_cents - discount_cents,
            tier_applied=tier,
            created_by_user_id=performed_by.id if performed_by else None,
            created_at=now,
        )
        shop_order.items.extend(order_lines)
        db.session.add(shop_order)
        db.session.flush()

        if customer is not None:
            record_purchase(
                user_id=customer.id,
                total_spent_cents=shop_order.total_cents,
                total_profit_cents=profit_cents,
                shop_order_id=shop_order.id,
                purchase_date=now,
            )
            tier_service.recompute_tier(customer.id)

        return PosSaleResult(
            shop_order=shop_order,
            profit_cents=profit_cents,
            customer=customer,
            discount_bps=rate_bps,
            warnings=warnings,
            skipped_item_ids=skipped,
        )

    return run_in_transaction(_op)


def list_shop_orders(shop_id: int, limit: int = 50) -> list[ShopOrder]:
    return (
        db.session.query(ShopOrder)
        .filter(ShopOrder.shop_id == shop_id)
        .order_by(ShopOrder.created_at.desc(), ShopOrder.id.desc())
        .limit(limit)
        .all()
    )


def get_receipt(shop_order_id: int, shop: Shop | None = None) -> dict:
    """Receipt for a POS sale; scoped to `shop` when given."""
    shop_order = db.session.get(ShopOrder, shop_order_id)
    if shop_order is None or (shop is not None and shop_order.shop_id != shop.id):
        raise NotFoundError("Order not found", {"shop_order_id": shop_order_id})

    customer = shop_order.customer
    return {
        "shop_order": shop_order.to_dict(),
        "shop": shop_order.shop.to_dict(),
        "customer_email": customer.email if customer else None,
        "customer_tier": customer.tier if customer else None,
        "subtotal": format_cents(shop_order.subtotal_cents),
        "discount": format_cents(shop_order.discount_cents),
        "total": format_cents(shop_order.total_cents),
    }
