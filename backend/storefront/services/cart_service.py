# Overview: Session-scoped shopping cart reconciled against owner stock.

"""
Cart service.

A Cart is a plain value loaded from the caller's session row and written
back after each change. It never reserves stock: "available" for an item is
always the owner's current quantity minus what this cart already holds.
Out-of-stock conditions on add/plus are reported as messages, not errors.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

from ..extensions import db
from ..errors import ValidationError
from ..models import SessionToken, StockItem
from ..money import format_cents
from .inventory_service import get_item, list_items
from .session_service import load_cart_payload, store_cart_payload


CHANGE_PLUS = "plus"
CHANGE_MINUS = "minus"


@dataclass
class CartItem:
    stock_item_id: int
    title: str
    unit_price_cents: int
    quantity: int

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        data = asdict(self)
        data["line_total_cents"] = self.line_total_cents
        data["line_total"] = format_cents(self.line_total_cents)
        return data


@dataclass
class Cart:
    items: list[CartItem] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: list[dict]) -> "Cart":
        items = []
        for row in payload or []:
            items.append(CartItem(
                stock_item_id=int(row["stock_item_id"]),
                title=str(row.get("title", "")),
                unit_price_cents=int(row.get("unit_price_cents", 0)),
                quantity=int(row.get("quantity", 0)),
            ))
        return cls(items=[i for i in items if i.quantity > 0])

    def to_payload(self) -> list[dict]:
        return [asdict(i) for i in self.items]

    def line_for(self, stock_item_id: int) -> CartItem | None:
        for line in self.items:
            if line.stock_item_id == stock_item_id:
                return line
        return None

    def quantity_of(self, stock_item_id: int) -> int:
        line = self.line_for(stock_item_id)
        return line.quantity if line else 0

    def remove(self, stock_item_id: int) -> None:
        self.items = [i for i in self.items if i.stock_item_id != stock_item_id]

    @property
    def count(self) -> int:
        return sum(i.quantity for i in self.items)

    @property
    def subtotal_cents(self) -> int:
        return sum(i.line_total_cents for i in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> dict:
        return {
            "items": [i.to_dict() for i in self.items],
            "count": self.count,
            "subtotal_cents": self.subtotal_cents,
            "subtotal": format_cents(self.subtotal_cents),
        }


@dataclass
class CartResult:
    cart: Cart
    changed: bool
    message: str

    def to_dict(self) -> dict:
        return {"cart": self.cart.to_dict(), "changed": self.changed, "message": self.message}


def load_cart(session: SessionToken) -> Cart:
    return Cart.from_payload(load_cart_payload(session))


def save_cart(session: SessionToken, cart: Cart) -> None:
    store_cart_payload(session, cart.to_payload())
    db.session.commit()


def available_quantity(item: StockItem, cart: Cart) -> int:
    return item.quantity - cart.quantity_of(item.id)


def catalog(session: SessionToken, category: str | None = None, search: str | None = None) -> list[dict]:
    """Owner items annotated with how many more this session could add."""
    cart = load_cart(session)
    rows = []
    for item in list_items(category=category, search=search):
        data = item.to_dict()
        data["in_cart"] = cart.quantity_of(item.id)
        data["available"] = max(available_quantity(item, cart), 0)
        rows.append(data)
    return rows


def add(session: SessionToken, stock_item_id: int) -> CartResult:
    """
    Add one unit. Unknown items raise NotFoundError; an item with nothing
    left to add leaves the cart as it was and says so.
    """
    item = get_item(stock_item_id)
    cart = load_cart(session)

    if available_quantity(item, cart) <= 0:
        return CartResult(cart, False, f"{item.title} is out of stock")

    line = cart.line_for(item.id)
    if line is None:
        cart.items.append(CartItem(
            stock_item_id=item.id,
            title=item.title,
            unit_price_cents=item.price_cents,
            quantity=1,
        ))
    else:
        line.quantity += 1
    save_cart(session, cart)
    return CartResult(cart, True, f"Added {item.title} to cart")


def adjust(session: SessionToken, stock_item_id: int, change: str) -> CartResult:
    """
    Step a line up or down by one.

    plus re-checks the owner's current quantity; minus to zero drops the line.
    """
    change = (change or "").strip().lower()
    if change not in (CHANGE_PLUS, CHANGE_MINUS):
        raise ValidationError("change must be 'plus' or 'minus'", {"change": change})

    cart = load_cart(session)
    line = cart.line_for(stock_item_id)
    if line is None:
        return CartResult(cart, False, "Item is not in your cart")

    if change == CHANGE_PLUS:
        item = get_item(stock_item_id)
        if line.quantity >= item.quantity:
            return CartResult(cart, False, f"Only {item.quantity} units of {item.title} available")
        line.quantity += 1
        message = f"Increased {line.title}"
    else:
        line.quantity -= 1
        if line.quantity <= 0:
            cart.remove(stock_item_id)
            message = f"Removed {line.title} from cart"
        else:
            message = f"Decreased {line.title}"

    save_cart(session, cart)
    return CartResult(cart, True, message)


def clear(session: SessionToken) -> Cart:
    cart = Cart()
    save_cart(session, cart)
    return cart


def count(session: SessionToken) -> int:
    return load_cart(session).count


def lines(session: SessionToken) -> list[CartItem]:
    return list(load_cart(session).items)
