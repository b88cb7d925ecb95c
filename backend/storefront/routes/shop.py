# Overview: Flask API routes for the customer storefront: catalog, cart, checkout, history.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_roles
from ..errors import StoreError
from ..extensions import db
from ..models import ROLE_USER
from ..services import cart_service, order_service, sales_history_service


shop_bp = Blueprint("shop", __name__, url_prefix="/api/shop")


def _session():
    return g.session_context.session


def _error(e: StoreError):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


@shop_bp.get("/catalog")
@require_auth
@require_roles(ROLE_USER)
def catalog():
    items = cart_service.catalog(
        _session(),
        category=request.args.get("category") or None,
        search=request.args.get("search") or None,
    )
    return jsonify({"items": items, "cart_count": cart_service.count(_session())}), 200


@shop_bp.get("/cart")
@require_auth
@require_roles(ROLE_USER)
def view_cart():
    return jsonify(cart_service.load_cart(_session()).to_dict()), 200


@shop_bp.get("/cart/count")
@require_auth
@require_roles(ROLE_USER)
def cart_count():
    return jsonify({"count": cart_service.count(_session())}), 200


@shop_bp.post("/cart/items")
@require_auth
@require_roles(ROLE_USER)
def add_to_cart():
    """Body: {"stock_item_id": int}. An out-of-stock add returns 200 with changed=false."""
    data = request.get_json(silent=True) or {}
    try:
        result = cart_service.add(_session(), data["stock_item_id"])
        return jsonify(result.to_dict()), 200
    except KeyError as e:
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except StoreError as e:
        return _error(e)


@shop_bp.post("/cart/items/<int:stock_item_id>/adjust")
@require_auth
@require_roles(ROLE_USER)
def adjust_cart(stock_item_id: int):
    """Body: {"change": "plus" | "minus"}"""
    data = request.get_json(silent=True) or {}
    try:
        result = cart_service.adjust(_session(), stock_item_id, data.get("change"))
        return jsonify(result.to_dict()), 200
    except StoreError as e:
        return _error(e)


@shop_bp.delete("/cart")
@require_auth
@require_roles(ROLE_USER)
def clear_cart():
    cart = cart_service.clear(_session())
    return jsonify({"cart": cart.to_dict(), "message": "Cart cleared"}), 200


@shop_bp.post("/checkout")
@require_auth
@require_roles(ROLE_USER)
def checkout():
    """
    Returns:
        201: Order placed, cart emptied
        400: Cart is empty
        409: An item no longer has enough stock (cart left as is)
    """
    try:
        return jsonify(order_service.checkout(_session(), g.current_user)), 201
    except StoreError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to check out cart")
        return jsonify({"error": "Internal server error"}), 500


@shop_bp.get("/orders")
@require_auth
@require_roles(ROLE_USER)
def order_history():
    orders = sales_history_service.order_history(g.current_user.id)
    return jsonify({"orders": orders, "count": len(orders)}), 200


@shop_bp.get("/orders/<int:order_id>")
@require_auth
@require_roles(ROLE_USER)
def get_order(order_id: int):
    try:
        return jsonify(order_service.get_order(order_id, user=g.current_user).to_dict()), 200
    except StoreError as e:
        return _error(e)


@shop_bp.get("/report")
@require_auth
@require_roles(ROLE_USER)
def purchase_report():
    try:
        return jsonify(sales_history_service.purchase_report(g.current_user.id)), 200
    except StoreError as e:
        return _error(e)
