# Overview: Flask API routes for stock movements; restock and incoming/outgoing history.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..errors import StockflowError
from ..models import IncomingStockLog
from ..responses import json_error
from ..services import stock_log_service
from ..services.products_service import restock_product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_stock_incoming,
)

INCOMING_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity_added", "arrival_date", "po_number", "supplier"},
    required_on_create={"product_id", "quantity_added", "arrival_date"},
)

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _history_limit() -> int:
    return max(1, min(request.args.get("limit", 200, type=int), 500))


@stock_bp.post("/incoming")
@require_auth
def restock_route():
    """
    Receive stock for a product.

    Request body:
    {
        "product_id": 1,
        "quantity_added": "12",       // main units, > 0
        "arrival_date": "2024-03-01", // business date
        "po_number": "PO-77",         // optional
        "supplier": "Acme"            // optional
    }

    The stock increment and the incoming log entry commit together.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=IncomingStockLog, payload=payload, policy=INCOMING_POLICY, partial=False)
        enforce_rules_stock_incoming(patch)
        product, entry = restock_product(
            account_id=g.account_id,
            product_id=patch["product_id"],
            quantity=patch["quantity_added"],
            arrival_date=patch["arrival_date"],
            po_number=patch.get("po_number"),
            supplier=patch.get("supplier"),
        )
    except StockflowError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to restock product")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info(
        "Restocked product %s for account %s by %s", product.id, g.account_id, entry.quantity_added
    )
    return jsonify({"product": product.to_dict(), "entry": entry.to_dict()}), 201


@stock_bp.get("/incoming")
@require_auth
def list_incoming_route():
    entries = stock_log_service.list_incoming(
        account_id=g.account_id,
        product_id=request.args.get("product_id", type=int),
        limit=_history_limit(),
    )
    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200


@stock_bp.get("/outgoing")
@require_auth
def list_outgoing_route():
    entries = stock_log_service.list_outgoing(
        account_id=g.account_id,
        product_id=request.args.get("product_id", type=int),
        gate_pass_id=request.args.get("gate_pass_id") or None,
        limit=_history_limit(),
    )
    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200
