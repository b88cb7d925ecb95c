# Overview: Owner reporting routes.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_roles
from ..models import ROLE_OWNER
from ..services import sales_history_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/user-profit")
@require_auth
@require_roles(ROLE_OWNER)
def user_profit():
    """Revenue, profit and the top customers by profit contributed (?top=3)."""
    top_n = max(request.args.get("top", 3, type=int), 1)
    return jsonify(sales_history_service.owner_profit_report(top_n=top_n)), 200
