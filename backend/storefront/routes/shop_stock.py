# Overview: Flask API routes for a shop's local stock: dashboard, restock from owner, price override.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_roles
from ..errors import StoreError
from ..extensions import db
from ..models import ROLE_ADMIN, ROLE_OWNER, ROLE_PROPRIETOR
from ..services import inventory_service, shop_service, transfer_service


shop_stock_bp = Blueprint("shop_stock", __name__, url_prefix="/api/shop-stock")

SHOP_ROLES = (ROLE_PROPRIETOR, ROLE_OWNER, ROLE_ADMIN)


def _current_shop():
    """Proprietors act on their own shop; owners/admins pass ?shop_id=."""
    return shop_service.resolve_shop(g.current_user, request.args.get("shop_id", type=int))


def _error(e: StoreError):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


@shop_stock_bp.get("/dashboard")
@require_auth
@require_roles(*SHOP_ROLES)
def dashboard():
    try:
        return jsonify(shop_service.dashboard(_current_shop())), 200
    except StoreError as e:
        return _error(e)


@shop_stock_bp.get("")
@require_auth
@require_roles(*SHOP_ROLES)
def list_shop_stock():
    try:
        shop = _current_shop()
        stocks = shop_service.list_shop_stock(shop.id)
        return jsonify({"shop_id": shop.id, "stocks": [s.to_dict() for s in stocks]}), 200
    except StoreError as e:
        return _error(e)


@shop_stock_bp.get("/owner-items")
@require_auth
@require_roles(*SHOP_ROLES)
def owner_items():
    """Owner items a proprietor can pull from, with current owner quantity."""
    items = inventory_service.list_items(search=request.args.get("search") or None)
    return jsonify({"items": [
        {
            "id": i.id,
            "title": i.title,
            "category": i.category,
            "quantity": i.quantity,
            "price_cents": i.price_cents,
            "cost_price_cents": i.cost_price_cents,
            "source": i.source,
        }
        for i in items
    ]}), 200


@shop_stock_bp.post("/restock")
@require_auth
@require_roles(*SHOP_ROLES)
def restock():
    """
    Pull units from the owner ledger into the current shop.

    Request body:
    {
        "stock_item_id": int,
        "quantity": int
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        shop = _current_shop()
        log = transfer_service.restock_from_owner(
            shop_id=shop.id,
            stock_item_id=data["stock_item_id"],
            quantity=data.get("quantity"),
            performed_by_user_id=g.current_user.id,
        )
        item = log.stock_item
        return jsonify({
            "transfer": log.to_dict(),
            "message": (
                f"Added {log.quantity} x {item.title} to your shop "
                f"(Source: {item.source or 'Unknown'}). Remaining owner stock: {item.quantity}."
            ),
        }), 201
    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except StoreError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to restock shop")
        return jsonify({"error": "Internal server error"}), 500


@shop_stock_bp.patch("/<int:shop_stock_id>/price")
@require_auth
@require_roles(*SHOP_ROLES)
def set_price(shop_stock_id: int):
    """Body: {"price_override_cents": int | null}. Affects future POS sales only."""
    data = request.get_json(silent=True) or {}
    try:
        shop = _current_shop()
        row = transfer_service.set_price_override(shop.id, shop_stock_id, data.get("price_override_cents"))
        return jsonify(row.to_dict()), 200
    except StoreError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to set price for shop stock %s", shop_stock_id)
        return jsonify({"error": "Internal server error"}), 500


@shop_stock_bp.get("/transfers")
@require_auth
@require_roles(*SHOP_ROLES)
def shop_transfers():
    try:
        shop = _current_shop()
        transfers = transfer_service.list_transfers(shop_id=shop.id)
        return jsonify({"transfers": [t.to_dict() for t in transfers]}), 200
    except StoreError as e:
        return _error(e)
