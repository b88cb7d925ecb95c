# backend/storefront/routes/transfers.py
"""
Owner/admin transfer API routes.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_roles
from ..errors import StoreError
from ..extensions import db
from ..models import ROLE_ADMIN, ROLE_OWNER
from ..services import transfer_service


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transfers_bp.get("")
@require_auth
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def list_transfers():
    shop_id = request.args.get("shop_id", type=int)
    transfers = transfer_service.list_transfers(shop_id=shop_id)
    return jsonify({"transfers": [t.to_dict() for t in transfers], "count": len(transfers)}), 200


@transfers_bp.post("")
@require_auth
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def create_transfer():
    """
    Move owner stock into a shop.

    Request body:
    {
        "shop_id": int,
        "stock_item_id": int,
        "quantity": int
    }

    Returns:
        201: Transfer recorded
        400: Invalid quantity / missing field
        404: Shop or stock item not found
        409: Not enough owner stock
    """
    data = request.get_json(silent=True) or {}

    try:
        transfer = transfer_service.transfer(
            shop_id=data["shop_id"],
            stock_item_id=data["stock_item_id"],
            quantity=data.get("quantity"),
            performed_by_user_id=g.current_user.id,
        )
        return jsonify({
            "transfer": transfer.to_dict(),
            "owner_remaining": transfer.stock_item.quantity,
            "message": f"Transferred {transfer.quantity} x {transfer.stock_item.title} to {transfer.shop.name}",
        }), 201

    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except StoreError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to transfer stock")
        return jsonify({"error": "Internal server error"}), 500
