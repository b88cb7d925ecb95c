# Overview: Flask API routes for the owner inventory ledger.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_roles
from ..errors import StoreError
from ..extensions import db
from ..models import ROLE_OWNER
from ..services import inventory_service


stock_items_bp = Blueprint("stock_items", __name__, url_prefix="/api/stock-items")


def _error(e: StoreError):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


@stock_items_bp.get("")
@require_auth
@require_roles(ROLE_OWNER)
def list_stock_items():
    """List items, optionally filtered by ?category= and ?search= (title, case-insensitive)."""
    items = inventory_service.list_items(
        category=request.args.get("category") or None,
        search=request.args.get("search") or None,
    )
    return jsonify({
        "items": [i.to_dict() for i in items],
        "count": len(items),
        "categories": inventory_service.list_categories(),
        "summary": inventory_service.valuation_summary(),
    }), 200


@stock_items_bp.get("/summary")
@require_auth
@require_roles(ROLE_OWNER)
def stock_summary():
    return jsonify(inventory_service.valuation_summary()), 200


@stock_items_bp.get("/<int:item_id>")
@require_auth
@require_roles(ROLE_OWNER)
def get_stock_item(item_id: int):
    try:
        return jsonify(inventory_service.get_item(item_id).to_dict()), 200
    except StoreError as e:
        return _error(e)


@stock_items_bp.post("")
@require_auth
@require_roles(ROLE_OWNER)
def create_stock_item():
    try:
        item = inventory_service.create_item(request.get_json(silent=True))
        return jsonify(item.to_dict()), 201
    except StoreError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create stock item")
        return jsonify({"error": "Internal server error"}), 500


@stock_items_bp.patch("/<int:item_id>")
@require_auth
@require_roles(ROLE_OWNER)
def update_stock_item(item_id: int):
    try:
        item = inventory_service.update_item(item_id, request.get_json(silent=True))
        return jsonify(item.to_dict()), 200
    except StoreError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update stock item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500


@stock_items_bp.delete("/<int:item_id>")
@require_auth
@require_roles(ROLE_OWNER)
def delete_stock_item(item_id: int):
    try:
        inventory_service.delete_item(item_id)
        return jsonify({"message": "Stock item deleted"}), 200
    except StoreError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete stock item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500
