# Overview: Flask API routes for the shop profile; shop details, employees and units.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..errors import StockflowError
from ..responses import json_error
from ..services import profile_service


profile_bp = Blueprint("profile", __name__, url_prefix="/api/profile")


@profile_bp.get("")
@require_auth
def get_profile_route():
    """Shop details, employees (in order) and units for the caller's account."""
    return jsonify(profile_service.load_profile(g.account_id)), 200


@profile_bp.put("")
@require_auth
def update_profile_route():
    """
    Update shop details and/or employees.

    Request body (both sections optional):
    {
        "shop_details": {"shop_name": "...", "contact_number": "...", "address": "..."},
        "employees": ["Alice", "Bob"]
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        profile = profile_service.save_profile(
            g.account_id,
            shop_details=payload.get("shop_details"),
            employees=payload.get("employees"),
        )
    except StockflowError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update shop profile")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(profile), 200


@profile_bp.put("/employees")
@require_auth
def replace_employees_route():
    payload = request.get_json(silent=True) or {}

    try:
        profile = profile_service.save_profile(g.account_id, employees=payload.get("employees", []))
    except StockflowError as e:
        return json_error(e)

    return jsonify({"employees": profile["employees"]}), 200


@profile_bp.get("/units")
@require_auth
def list_units_route():
    units = profile_service.list_units(g.account_id)
    return jsonify({"items": [u.to_dict() for u in units], "count": len(units)}), 200


@profile_bp.post("/units")
@require_auth
def create_unit_route():
    """
    Create a unit.

    Request body: {"code": "dz", "name": "Dozen", "abbreviation": "dz"}
    """
    payload = request.get_json(silent=True) or {}

    try:
        unit = profile_service.create_unit(
            g.account_id,
            code=payload.get("code"),
            name=payload.get("name"),
            abbreviation=payload.get("abbreviation"),
        )
    except StockflowError as e:
        return json_error(e)

    return jsonify(unit.to_dict()), 201


@profile_bp.put("/units/<int:unit_id>")
@require_auth
def update_unit_route(unit_id: int):
    """Rename a unit. Existing products and logs keep the name they were written with."""
    payload = request.get_json(silent=True) or {}

    try:
        unit = profile_service.update_unit(
            g.account_id,
            unit_id,
            name=payload.get("name"),
            abbreviation=payload.get("abbreviation"),
        )
    except StockflowError as e:
        return json_error(e)

    return jsonify(unit.to_dict()), 200
