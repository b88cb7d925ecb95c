# Overview: Flask API routes for in-shop POS sales and receipts.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_roles
from ..errors import StoreError
from ..extensions import db
from ..models import ROLE_ADMIN, ROLE_OWNER, ROLE_PROPRIETOR
from ..services import order_service, shop_service


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")

POS_ROLES = (ROLE_PROPRIETOR, ROLE_OWNER, ROLE_ADMIN)


def _current_shop():
    return shop_service.resolve_shop(g.current_user, request.args.get("shop_id", type=int))


def _error(e: StoreError):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


@pos_bp.get("/stock")
@require_auth
@require_roles(*POS_ROLES)
def pos_stock():
    """Sellable lines for the till: shop stock with its effective unit price."""
    try:
        shop = _current_shop()
        stocks = shop_service.list_shop_stock(shop.id)
        return jsonify({"shop": shop.to_dict(), "stocks": [s.to_dict() for s in stocks]}), 200
    except StoreError as e:
        return _error(e)


@pos_bp.get("/customer-tier")
@require_auth
@require_roles(*POS_ROLES)
def customer_tier():
    """?identifier=<email or phone>"""
    identifier = request.args.get("identifier") or request.args.get("email") or request.args.get("phone")
    return jsonify(order_service.lookup_customer_tier(identifier)), 200


@pos_bp.post("/sales")
@require_auth
@require_roles(*POS_ROLES)
def create_sale():
    """
    Request body:
    {
        "quantities": {"<stock_item_id>": int, ...},
        "customer": str (optional, email or phone),
        "signup_new": bool (optional)
    }

    Returns:
        201: Sale recorded (with low-stock warnings and skipped item ids)
        400: No valid lines / bad input
        404: No shop assigned
        409: Shop stock too low for a line
    """
    data = request.get_json(silent=True) or {}
    try:
        shop = _current_shop()
        result = order_service.process_pos_sale(
            shop=shop,
            quantities=data.get("quantities") or {},
            performed_by=g.current_user,
            customer_identifier=data.get("customer"),
            signup_new=bool(data.get("signup_new")),
        )
        return jsonify(result.to_dict()), 201
    except StoreError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to process POS sale")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/sales")
@require_auth
@require_roles(*POS_ROLES)
def list_sales():
    try:
        shop = _current_shop()
        orders = order_service.list_shop_orders(shop.id, limit=request.args.get("limit", 50, type=int))
        return jsonify({"sales": [o.to_dict() for o in orders]}), 200
    except StoreError as e:
        return _error(e)


@pos_bp.get("/sales/<int:shop_order_id>/receipt")
@require_auth
@require_roles(*POS_ROLES)
def receipt(shop_order_id: int):
    try:
        shop = _current_shop()
        return jsonify(order_service.get_receipt(shop_order_id, shop=shop)), 200
    except StoreError as e:
        return _error(e)
