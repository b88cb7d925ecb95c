from __future__ import annotations

from ..extensions import db
from storefront.money import format_cents
from storefront.time_utils import to_utc_z


TRANSFER_KIND_TRANSFER = "TRANSFER"  # owner/admin pushes stock to a shop
TRANSFER_KIND_RESTOCK = "RESTOCK"    # proprietor pulls stock from the owner


class StockItem(db.Model):
    """
    Owner inventory: the single source of truth for how many units exist.

    Quantity moves out through shop transfers and online checkout, always
    via the conditional decrement in services.concurrency.
    """
    __tablename__ = "stock_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_stock_items_quantity_nonneg"),
        db.CheckConstraint("price_cents >= 0", name="ck_stock_items_price_nonneg"),
        db.CheckConstraint("cost_price_cents >= 0", name="ck_stock_items_cost_nonneg"),
        db.Index("ix_stock_items_category_title", "category", "title"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False)
    category = db.Column(db.String(50), nullable=False, index=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    original_price_cents = db.Column(db.Integer, nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    is_new = db.Column(db.Boolean, nullable=False, default=False)
    is_on_sale = db.Column(db.Boolean, nullable=False, default=False)
    short_description = db.Column(db.String(250), nullable=True)
    image_url = db.Column(db.String(500), nullable=True)
    average_rating = db.Column(db.Float, nullable=False, default=0.0)
    review_count = db.Column(db.Integer, nullable=False, default=0)
    source = db.Column(db.String(100), nullable=True)  # supplier

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StockItem id={self.id} title={self.title!r} quantity={self.quantity}>"

    @property
    def profit_per_unit_cents(self) -> int:
        return max(self.price_cents - (self.cost_price_cents or 0), 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "price_cents": self.price_cents,
            "price": format_cents(self.price_cents),
            "cost_price_cents": self.cost_price_cents,
            "original_price_cents": self.original_price_cents,
            "profit_per_unit_cents": self.profit_per_unit_cents,
            "quantity": self.quantity,
            "is_new": self.is_new,
            "is_on_sale": self.is_on_sale,
            "short_description": self.short_description,
            "image_url": self.image_url,
            "average_rating": self.average_rating,
            "review_count": self.review_count,
            "source": self.source,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Shop(db.Model):
    """
    A retail outlet operated by at most one proprietor.

    proprietor_email and proprietor_user_id are set together or both left empty.
    """
    __tablename__ = "shops"
    __table_args__ = (
        db.CheckConstraint(
            "(proprietor_email IS NULL AND proprietor_user_id IS NULL) OR "
            "(proprietor_email IS NOT NULL AND proprietor_user_id IS NOT NULL)",
            name="ck_shops_proprietor_pair",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    address = db.Column(db.String(200), nullable=False)
    phone = db.Column(db.String(20), nullable=False)

    proprietor_email = db.Column(db.String(255), nullable=True)
    proprietor_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True, index=True
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    proprietor = db.relationship("User", foreign_keys=[proprietor_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r} proprietor={self.proprietor_email or 'No Proprietor'}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "proprietor_email": self.proprietor_email,
            "proprietor_user_id": self.proprietor_user_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class ShopStock(db.Model):
    """
    A shop's local holding of one owner item.

    price_override_cents / cost_price_cents / source are a point-in-time copy
    taken when the row is created (or refreshed by a proprietor restock); they
    do not follow later owner price changes.
    """
    __tablename__ = "shop_stocks"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "stock_item_id", name="uq_shop_stocks_shop_item"),
        db.CheckConstraint("quantity >= 0", name="ck_shop_stocks_quantity_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)
    stock_item_id = db.Column(
        db.Integer, db.ForeignKey("stock_items.id", ondelete="CASCADE"), nullable=False, index=True
    )

    quantity = db.Column(db.Integer, nullable=False, default=0)

    price_override_cents = db.Column(db.Integer, nullable=True)
    cost_price_cents = db.Column(db.Integer, nullable=True)
    source = db.Column(db.String(100), nullable=True)

    shop = db.relationship(
        "Shop",
        backref=db.backref("stocks", lazy=True, cascade="all, delete-orphan"),
    )
    stock_item = db.relationship(
        "StockItem",
        backref=db.backref("shop_stocks", lazy=True, cascade="all, delete-orphan"),
    )

    @property
    def unit_price_cents(self) -> int:
        """Shop sell price: local override if set, else the owner's current price."""
        if self.price_override_cents is not None:
            return self.price_override_cents
        return self.stock_item.price_cents

    def to_dict(self) -> dict:
        item = self.stock_item
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "stock_item_id": self.stock_item_id,
            "title": item.title if item else None,
            "category": item.category if item else None,
            "quantity": self.quantity,
            "price_override_cents": self.price_override_cents,
            "unit_price_cents": self.unit_price_cents if item else self.price_override_cents,
            "cost_price_cents": self.cost_price_cents,
            "source": self.source,
        }


class ShopTransfer(db.Model):
    """
    Append-only log of owner -> shop stock movements.

    Rows are written only as a side effect of a successful transfer or restock.
    """
    __tablename__ = "shop_transfers"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_shop_transfers_quantity_pos"),
        db.Index("ix_shop_transfers_shop_created", "shop_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)
    stock_item_id = db.Column(
        db.Integer, db.ForeignKey("stock_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity = db.Column(db.Integer, nullable=False)
    kind = db.Column(db.String(16), nullable=False, default=TRANSFER_KIND_TRANSFER)

    performed_by_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship(
        "Shop",
        backref=db.backref("transfers", lazy=True, cascade="all, delete-orphan"),
    )
    stock_item = db.relationship(
        "StockItem",
        backref=db.backref("transfers", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "shop_name": self.shop.name if self.shop else None,
            "stock_item_id": self.stock_item_id,
            "title": self.stock_item.title if self.stock_item else None,
            "quantity": self.quantity,
            "kind": self.kind,
            "performed_by_user_id": self.performed_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
