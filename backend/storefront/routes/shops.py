# Overview: Flask API routes for shop management and proprietor assignment.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_roles
from ..errors import StoreError
from ..extensions import db
from ..models import ROLE_ADMIN, ROLE_OWNER
from ..services import shop_service


shops_bp = Blueprint("shops", __name__, url_prefix="/api/shops")


def _error(e: StoreError):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


@shops_bp.get("")
@require_auth
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def list_shops():
    """?unassigned=1 limits the list to shops still waiting for a proprietor."""
    unassigned = request.args.get("unassigned", "").lower() in {"1", "true", "yes"}
    shops = shop_service.list_shops(unassigned_only=unassigned)
    return jsonify({"shops": [s.to_dict() for s in shops], "count": len(shops)}), 200


@shops_bp.get("/<int:shop_id>")
@require_auth
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def get_shop(shop_id: int):
    try:
        return jsonify(shop_service.dashboard(shop_service.get_shop(shop_id))), 200
    except StoreError as e:
        return _error(e)


@shops_bp.post("")
@require_auth
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def create_shop():
    try:
        shop = shop_service.create_shop(request.get_json(silent=True))
        return jsonify(shop.to_dict()), 201
    except StoreError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create shop")
        return jsonify({"error": "Internal server error"}), 500


@shops_bp.patch("/<int:shop_id>")
@require_auth
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def update_shop(shop_id: int):
    try:
        shop = shop_service.update_shop(shop_id, request.get_json(silent=True))
        return jsonify(shop.to_dict()), 200
    except StoreError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update shop %s", shop_id)
        return jsonify({"error": "Internal server error"}), 500


@shops_bp.delete("/<int:shop_id>")
@require_auth
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def delete_shop(shop_id: int):
    try:
        shop_service.delete_shop(shop_id)
        return jsonify({"message": "Shop deleted"}), 200
    except StoreError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete shop %s", shop_id)
        return jsonify({"error": "Internal server error"}), 500


@shops_bp.post("/<int:shop_id>/proprietor")
@require_auth
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def assign_proprietor(shop_id: int):
    """
    Request body:
    {
        "email": str,
        "password": str  (used only when the account does not exist yet)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        shop = shop_service.assign_proprietor(shop_id, data.get("email"), data.get("password"))
        return jsonify({
            "shop": shop.to_dict(),
            "message": f"Proprietor {shop.proprietor_email} has been assigned to '{shop.name}'",
        }), 200
    except StoreError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to assign proprietor to shop %s", shop_id)
        return jsonify({"error": "Internal server error"}), 500
