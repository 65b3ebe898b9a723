# Overview: Flask API routes for gate passes; issuance, lookup, reprint and scan.

"""
Gate pass routes

POST /api/gate-passes runs the full issuance workflow for a cart:
re-authentication, stock decrements and outgoing log rows in one
transaction, then the printable document.

Request body:
{
    "customer": "Acme Traders",
    "authorized_by": "Alice",
    "dispatch_date": "2024-03-01",
    "reason": "optional, defaults to 'Dispatched on Mar 01, 2024'",
    "password": "current account password",
    "items": [
        {"product_id": 1, "quantity": "5", "unit_mode": "main"},
        {"product_id": 2, "quantity": "30", "unit_mode": "pieces"}
    ]
}

Status codes: 201 issued, 400 form incomplete, 403 wrong password,
409 one or more lines rejected (body lists every failing line),
502 other re-authentication failure, 503 database unavailable.
"""

from flask import Blueprint, Response, request, jsonify, current_app, g

from ..decorators import require_auth
from ..errors import StockflowError
from ..responses import json_error
from ..services import gate_pass_service
from ..services.gate_pass_service import GatePassRequest, IssuanceFailed


gate_passes_bp = Blueprint("gate_passes", __name__, url_prefix="/api/gate-passes")


@gate_passes_bp.post("")
@require_auth
def issue_gate_pass_route():
    payload = request.get_json(silent=True) or {}
    password = payload.get("password") or ""

    try:
        gate_request = GatePassRequest.from_payload(payload)
        # Form errors are reported before asking for a password
        gate_pass_service.validate_request(gate_request)
        if not password:
            return jsonify({"error": "Password is required", "field": "password"}), 400
        issued = gate_pass_service.issue_gate_pass(g.session_context, gate_request, password)
    except IssuanceFailed as e:
        return jsonify({
            "error": e.message,
            "failures": [f.to_dict() for f in e.failures],
            "committed_lines": 0,
        }), 409
    except StockflowError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to issue gate pass")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "gate_pass": issued.gate_pass.to_dict(),
        "document_text": issued.document_text,
        "scan_payload": issued.scan_payload,
    }), 201


@gate_passes_bp.get("")
@require_auth
def list_gate_passes_route():
    """Newest passes first; one summary row per pass."""
    limit = max(1, min(request.args.get("limit", 50, type=int), 200))
    items = gate_pass_service.list_gate_passes(g.account_id, limit=limit)
    return jsonify({"items": items, "count": len(items)}), 200


@gate_passes_bp.get("/<gate_pass_id>")
@require_auth
def get_gate_pass_route(gate_pass_id: str):
    try:
        gate_pass = gate_pass_service.get_gate_pass(g.account_id, gate_pass_id)
    except StockflowError as e:
        return json_error(e)

    return jsonify(gate_pass.to_dict()), 200


@gate_passes_bp.get("/<gate_pass_id>/text")
@require_auth
def gate_pass_text_route(gate_pass_id: str):
    """Printable document regenerated from the stored log rows."""
    try:
        text = gate_pass_service.render_gate_pass(g.account_id, gate_pass_id)
    except StockflowError as e:
        return json_error(e)

    return Response(text, status=200, mimetype="text/plain")


@gate_passes_bp.post("/scan")
@require_auth
def scan_gate_pass_route():
    """
    Resolve a scanned code to its gate pass.

    Request body: {"payload": "GP-1709251200000"}
    """
    payload = request.get_json(silent=True) or {}
    scanned = str(payload.get("payload") or "").strip()
    if not scanned:
        return jsonify({"error": "payload is required", "field": "payload"}), 400

    try:
        gate_pass = gate_pass_service.get_gate_pass(g.account_id, scanned)
    except StockflowError as e:
        return json_error(e)

    return jsonify({"valid": True, "gate_pass": gate_pass.to_dict()}), 200
