# Overview: Flask API route for dashboard counts.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..services.stock_log_service import dashboard_summary

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/summary")
@require_auth
def summary_route():
    """
    Product status counts plus log activity over the last `days` (default 7).
    """
    days = request.args.get("days", 7, type=int)
    if days < 1 or days > 365:
        return jsonify({"error": "days must be between 1 and 365"}), 400

    return jsonify(dashboard_summary(account_id=g.account_id, days=days)), 200
