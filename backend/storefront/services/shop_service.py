# Overview: Shop records, proprietor assignment and the proprietor's shop dashboard.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Shop, ShopStock, StockItem, User, ROLE_PROPRIETOR
from ..validation import ModelValidationPolicy, validate_payload
from . import auth_service
from .concurrency import flush_versioned, run_in_transaction


SHOP_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "address", "phone"}),
    required_on_create=frozenset({"name", "address", "phone"}),
)


def list_shops(unassigned_only: bool = False) -> list[Shop]:
    query = db.session.query(Shop)
    if unassigned_only:
        query = query.filter(Shop.proprietor_user_id.is_(None))
    return query.order_by(Shop.name.asc(), Shop.id.asc()).all()


def get_shop(shop_id: int) -> Shop:
    shop = db.session.get(Shop, shop_id)
    if shop is None:
        raise NotFoundError("Shop not found", {"shop_id": shop_id})
    return shop


def create_shop(payload: dict) -> Shop:
    patch = validate_payload(model=Shop, payload=payload, policy=SHOP_POLICY, partial=False)

    def _op():
        shop = Shop(**patch)
        db.session.add(shop)
        db.session.flush()
        return shop

    return run_in_transaction(_op)


def update_shop(shop_id: int, payload: dict) -> Shop:
    patch = validate_payload(model=Shop, payload=payload, policy=SHOP_POLICY, partial=True)

    def _op():
        shop = get_shop(shop_id)
        for key, value in patch.items():
            setattr(shop, key, value)
        flush_versioned(Shop, shop_id)
        return shop

    return run_in_transaction(_op)


def delete_shop(shop_id: int) -> None:
    """Delete a shop; its stock rows and transfer log go with it."""
    def _op():
        shop = get_shop(shop_id)
        db.session.delete(shop)
        flush_versioned(Shop, shop_id)

    run_in_transaction(_op)


def assign_proprietor(shop_id: int, email: str, password: str) -> Shop:
    """
    Link a proprietor account to a shop that has none.

    The account is reused when the email already exists, otherwise created
    with the given password. Either way it is granted the Proprietor role.
    Email and user id are written together.
    """
    email = auth_service.normalize_email(email)
    if not email or not password:
        raise ValidationError("Email, password and shop are required")

    def _op():
        shop = get_shop(shop_id)
        if shop.proprietor_user_id is not None:
            raise ConflictError(
                "Shop already has a proprietor",
                {"shop_id": shop.id, "proprietor_email": shop.proprietor_email},
            )

        user = db.session.query(User).filter(User.email == email).first()
        if user is None:
            user = auth_service.create_user(email=email, password=password, role_name=ROLE_PROPRIETOR)
        else:
            other = db.session.query(Shop).filter(Shop.proprietor_user_id == user.id).first()
            if other is not None:
                raise ConflictError(
                    "User already runs another shop",
                    {"shop_id": other.id, "email": email},
                )
            auth_service.assign_role(user, ROLE_PROPRIETOR)

        shop.proprietor_user_id = user.id
        shop.proprietor_email = user.email
        flush_versioned(Shop, shop.id)
        current_app.logger.info("Assigned proprietor %s to shop %s", user.email, shop.id)
        return shop

    return run_in_transaction(_op)


def shop_for_proprietor(user: User) -> Shop:
    """Resolve the current proprietor's shop by user id, falling back to email."""
    shop = db.session.query(Shop).filter(Shop.proprietor_user_id == user.id).first()
    if shop is None and user.email:
        shop = db.session.query(Shop).filter(db.func.lower(Shop.proprietor_email) == user.email.lower()).first()
    if shop is None:
        raise NotFoundError("No shop assigned to your account")
    return shop


def resolve_shop(user: User, shop_id: int | None = None) -> Shop:
    """
    Shop a request acts on.

    Owners and admins may name any shop; a proprietor is always pinned to
    their own regardless of what they pass.
    """
    if shop_id is not None and user.has_role("Owner", "Admin"):
        return get_shop(shop_id)
    return shop_for_proprietor(user)


def list_shop_stock(shop_id: int) -> list[ShopStock]:
    return (
        db.session.query(ShopStock)
        .join(StockItem, StockItem.id == ShopStock.stock_item_id)
        .filter(ShopStock.shop_id == shop_id)
        .order_by(StockItem.title.asc(), ShopStock.id.asc())
        .all()
    )


def dashboard(shop: Shop) -> dict:
    stocks = list_shop_stock(shop.id)
    return {
        "shop": shop.to_dict(),
        "stocks": [s.to_dict() for s in stocks],
        "line_count": len(stocks),
        "total_units": sum(s.quantity for s in stocks),
    }
