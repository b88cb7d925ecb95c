# Overview: Owner messaging routes: compose, list, recipients.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_roles
from ..errors import StoreError
from ..extensions import db
from ..models import MESSAGE_CATEGORIES, ROLE_OWNER, TARGET_ALL, TARGET_USERS_ONLY, TIERS
from ..services import messaging_service


messages_bp = Blueprint("messages", __name__, url_prefix="/api/messages")


@messages_bp.get("")
@require_auth
@require_roles(ROLE_OWNER)
def list_messages():
    messages = messaging_service.list_messages()
    return jsonify({
        "messages": [m.to_dict(include_body=False) for m in messages],
        "categories": list(MESSAGE_CATEGORIES),
        "targets": [TARGET_ALL, TARGET_USERS_ONLY, *TIERS],
    }), 200


@messages_bp.post("")
@require_auth
@require_roles(ROLE_OWNER)
def send_message():
    """
    Request body:
    {
        "title": str,
        "html_body": str,
        "category": "Promotion" | "Update" | "Welcome" | "Notification" | "Feedback",
        "target": "All" | "UsersOnly" | "Bronze" | "Silver" | "Gold" | "Platinum"
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        message = messaging_service.send_message(
            sender=g.current_user,
            title=data.get("title"),
            html_body=data.get("html_body"),
            category=data.get("category") or "Notification",
            target=data.get("target"),
        )
        return jsonify({
            "message": message.to_dict(),
            "detail": f"Message sent to {len(message.receipts)} recipient(s)",
        }), 201
    except StoreError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to send message")
        return jsonify({"error": "Internal server error"}), 500


@messages_bp.get("/<int:message_id>/recipients")
@require_auth
@require_roles(ROLE_OWNER)
def recipients(message_id: int):
    try:
        message = messaging_service.get_message(message_id)
        return jsonify({
            "message": message.to_dict(),
            "recipients": messaging_service.message_recipients(message_id),
        }), 200
    except StoreError as e:
        return jsonify(e.to_dict()), e.status_code
