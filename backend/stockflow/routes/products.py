# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product management routes.

All product operations are scoped to the caller's account (g.account_id,
set by @require_auth). Stock is only set at creation; afterwards it moves
through restock and gate pass issuance so every change is logged.
"""
from flask import Blueprint, request, jsonify, current_app, g
from ..services import products_service
from ..services.stock_log_service import product_history
from ..models import Product
from ..errors import StockflowError
from ..responses import json_error
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
)
from ..decorators import require_auth

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "category", "stock_quantity", "unit_id", "pieces_per_unit",
        "price_cents", "low_stock_threshold", "image_url",
    },
    required_on_create={"sku", "name", "unit_id"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "category", "unit_id", "pieces_per_unit",
        "price_cents", "low_stock_threshold", "image_url",
    },
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List active products.

    Query params:
    - category: str (optional)
    - status: "In Stock" | "Low Stock" | "Out of Stock" (optional)
    - include_inactive: bool (optional) - include soft-deleted products
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    include_inactive = request.args.get("include_inactive", "false").lower() in ("1", "true", "yes")

    try:
        result = products_service.list_products(
            g.account_id,
            category=request.args.get("category"),
            status=request.args.get("status"),
            include_inactive=include_inactive,
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(result), 200


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Create a product.

    unit_id must be one of the account's units; its name and abbreviation
    are copied onto the product.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(account_id=g.account_id, patch=patch)
    except StockflowError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(created.to_dict()), 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(g.account_id, product_id)
    except StockflowError as e:
        return json_error(e)

    return jsonify(product.to_dict()), 200


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """Update master data. stock_quantity is rejected here."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(account_id=g.account_id, product_id=product_id, patch=patch)
    except StockflowError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(updated.to_dict()), 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """Soft-delete a product; its log history stays readable."""
    try:
        products_service.delete_product(account_id=g.account_id, product_id=product_id)
    except StockflowError as e:
        return json_error(e)

    return jsonify({"ok": True}), 200


@products_bp.get("/<int:product_id>/history")
@require_auth
def product_history_route(product_id: int):
    """Incoming and outgoing entries for one product, newest first."""
    limit = max(1, min(request.args.get("limit", 200, type=int), 500))

    try:
        products_service.get_product(g.account_id, product_id, include_inactive=True)
    except StockflowError as e:
        return json_error(e)

    return jsonify(product_history(account_id=g.account_id, product_id=product_id, limit=limit)), 200
