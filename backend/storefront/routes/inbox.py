# Overview: Customer inbox routes.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_roles
from ..errors import StoreError
from ..extensions import db
from ..models import ROLE_USER
from ..services import messaging_service


inbox_bp = Blueprint("inbox", __name__, url_prefix="/api/inbox")


@inbox_bp.get("")
@require_auth
@require_roles(ROLE_USER)
def inbox():
    """?category=<name|All>&search=<text>"""
    try:
        receipts = messaging_service.inbox(
            g.current_user,
            category=request.args.get("category"),
            search=request.args.get("search"),
        )
    except StoreError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({
        "messages": [r.to_dict() for r in receipts],
        "unread_count": messaging_service.unread_count(g.current_user),
    }), 200


@inbox_bp.get("/unread-count")
@require_auth
@require_roles(ROLE_USER)
def unread_count():
    return jsonify({"unread_count": messaging_service.unread_count(g.current_user)}), 200


@inbox_bp.post("/<int:receipt_id>/read")
@require_auth
@require_roles(ROLE_USER)
def mark_read(receipt_id: int):
    try:
        receipt = messaging_service.mark_read(g.current_user, receipt_id)
        return jsonify(receipt.to_dict()), 200
    except StoreError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code


@inbox_bp.post("/read-all")
@require_auth
@require_roles(ROLE_USER)
def mark_all_read():
    updated = messaging_service.mark_all_read(g.current_user)
    return jsonify({"updated": updated, "unread_count": 0}), 200
