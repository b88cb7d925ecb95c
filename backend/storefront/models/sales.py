from __future__ import annotations

from ..extensions import db
from storefront.money import format_cents
from storefront.time_utils import to_utc_z


class Order(db.Model):
    """
    Online storefront order. Immutable once written.

    total_cents == sum(line.unit_price_cents * line.quantity).
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    total_cents = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        back_populates="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "total_cents": self.total_cents,
            "total": format_cents(self.total_cents),
            "created_at": to_utc_z(self.created_at),
            "items": [i.to_dict() for i in self.items],
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    stock_item_id = db.Column(
        db.Integer, db.ForeignKey("stock_items.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Snapshot so the line still reads correctly after the item is deleted
    title = db.Column(db.String(100), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", back_populates="items")

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_item_id": self.stock_item_id,
            "title": self.title,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class ShopOrder(db.Model):
    """
    POS sale at a shop. Immutable once written.

    Lines keep the pre-discount unit price; the header carries
    subtotal - discount = total.
    """
    __tablename__ = "shop_orders"
    __table_args__ = (
        db.Index("ix_shop_orders_shop_created", "shop_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    customer_phone = db.Column(db.String(32), nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)
    tier_applied = db.Column(db.String(16), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    shop = db.relationship(
        "Shop",
        backref=db.backref("orders", lazy=True, cascade="all, delete-orphan"),
    )
    customer = db.relationship("User", foreign_keys=[customer_user_id])
    items = db.relationship(
        "ShopOrderItem",
        back_populates="shop_order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ShopOrderItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "customer_user_id": self.customer_user_id,
            "customer_phone": self.customer_phone,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "total": format_cents(self.total_cents),
            "tier_applied": self.tier_applied,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "items": [i.to_dict() for i in self.items],
        }


class ShopOrderItem(db.Model):
    __tablename__ = "shop_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shop_order_id = db.Column(
        db.Integer, db.ForeignKey("shop_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    stock_item_id = db.Column(
        db.Integer, db.ForeignKey("stock_items.id", ondelete="SET NULL"), nullable=True, index=True
    )
    title = db.Column(db.String(100), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    shop_order = db.relationship("ShopOrder", back_populates="items")

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    @property
    def profit_cents(self) -> int:
        return (self.unit_price_cents - self.unit_cost_cents) * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_item_id": self.stock_item_id,
            "title": self.title,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "profit_cents": self.profit_cents,
        }


class UserSalesHistory(db.Model):
    """
    Append-only per-purchase record, across both sales channels.

    The sum of total_profit_cents for a user is the only input to the
    loyalty tier. At most one of order_id / shop_order_id is set.
    """
    __tablename__ = "user_sales_histories"
    __table_args__ = (
        db.CheckConstraint(
            "NOT (order_id IS NOT NULL AND shop_order_id IS NOT NULL)",
            name="ck_user_sales_histories_single_source",
        ),
        db.Index("ix_user_sales_histories_user_date", "user_id", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    shop_order_id = db.Column(db.Integer, db.ForeignKey("shop_orders.id", ondelete="SET NULL"), nullable=True)

    total_spent_cents = db.Column(db.Integer, nullable=False)
    total_profit_cents = db.Column(db.Integer, nullable=False)
    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False)

    user = db.relationship("User", backref=db.backref("sales_histories", lazy=True))

    @property
    def channel(self) -> str:
        return "POS" if self.shop_order_id is not None else "ONLINE"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "order_id": self.order_id,
            "shop_order_id": self.shop_order_id,
            "channel": self.channel,
            "total_spent_cents": self.total_spent_cents,
            "total_profit_cents": self.total_profit_cents,
            "purchase_date": to_utc_z(self.purchase_date),
        }
