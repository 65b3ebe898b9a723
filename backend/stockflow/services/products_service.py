# backend/stockflow/services/products_service.py
"""
Products Service

All product operations are scoped to the calling account (account_id).
- create_product snapshots the chosen unit onto the product
- update_product re-snapshots when unit_id changes; stock is not editable
  here (use restock / gate pass issuance so every change is logged)
- delete_product is a soft delete so stock logs keep a resolvable product
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal

from ..errors import ConflictError, ProductNotFound
from ..extensions import db
from ..models import Product
from ..models.inventory import PRODUCT_STATUSES, UnitSnapshot
from .concurrency import run_with_retry
from .profile_service import get_unit
from .stock_log_service import record_incoming
from .stock_service import _increment_inner, refresh_status
from .unit_conversion import quantize_stock

PRODUCT_MUTABLE_FIELDS = {
    "sku", "name", "category", "pieces_per_unit", "price_cents",
    "low_stock_threshold", "image_url",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _apply_unit(p: Product, unit: UnitSnapshot) -> None:
    p.unit_id = unit.unit_id
    p.unit_name = unit.name
    p.unit_abbreviation = unit.abbreviation


def _ensure_sku_available(account_id: int, sku: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Product).filter(Product.account_id == account_id, Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first():
        raise ConflictError("SKU already exists for this account.")


def list_products(
    account_id: int,
    *,
    category: str | None = None,
    status: str | None = None,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Account-scoped product listing with optional filters and pagination.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product).filter(Product.account_id == account_id)
    if not include_inactive:
        base_query = base_query.filter(Product.is_active.is_(True))
    if category:
        base_query = base_query.filter(Product.category == category)
    if status:
        if status not in PRODUCT_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(PRODUCT_STATUSES)}")
        base_query = base_query.filter(Product.status == status)
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    # If no pagination requested, return all items
    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)  # Default 20, max 100
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(account_id: int, product_id: int, *, include_inactive: bool = False) -> Product:
    p = db.session.query(Product).filter_by(id=product_id, account_id=account_id).first()
    if p is None or (not p.is_active and not include_inactive):
        raise ProductNotFound(product_id)
    return p


def create_product(*, account_id: int, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    patch must contain sku, name and unit_id; stock_quantity (default 0)
    sets the opening stock in main units.

    Raises:
        UnitNotFound: unit_id is not one of the account's units
        ConflictError: SKU already exists for the account
    """
    _ensure_sku_available(account_id, patch["sku"])
    unit = get_unit(account_id, patch["unit_id"])

    p = Product(account_id=account_id, pieces_per_unit=1)
    apply_product_patch(p, patch)
    _apply_unit(p, UnitSnapshot.of(unit))
    p.stock_quantity = quantize_stock(Decimal(patch.get("stock_quantity") or 0))
    refresh_status(p)

    db.session.add(p)
    db.session.commit()
    return p


def update_product(*, account_id: int, product_id: int, patch: dict) -> Product:
    """
    Update product master data.

    Raises:
        ProductNotFound
        UnitNotFound: new unit_id is not one of the account's units
        ConflictError: new SKU already exists for the account
    """
    def _op():
        p = get_product(account_id, product_id)

        if "sku" in patch and patch["sku"] != p.sku:
            _ensure_sku_available(account_id, patch["sku"], exclude_id=p.id)

        if "unit_id" in patch and patch["unit_id"] is not None:
            _apply_unit(p, UnitSnapshot.of(get_unit(account_id, patch["unit_id"])))

        apply_product_patch(p, patch)
        # Threshold edits can move a product in or out of Low Stock
        refresh_status(p)
        db.session.commit()
        return p

    return run_with_retry(_op)


def delete_product(*, account_id: int, product_id: int) -> None:
    """
    Soft-delete a product.

    The row stays so incoming/outgoing logs keep a valid product_id; the
    product disappears from listings and can no longer be restocked or
    issued.
    """
    p = get_product(account_id, product_id)
    p.is_active = False
    db.session.commit()


def restock_product(
    *,
    account_id: int,
    product_id: int,
    quantity,
    arrival_date: date,
    po_number: str | None = None,
    supplier: str | None = None,
):
    """
    Receive stock: increment + incoming log entry in one transaction.

    Returns (product, entry).
    """
    def _op():
        change = _increment_inner(account_id=account_id, product_id=product_id, quantity_to_add=quantity)
        entry = record_incoming(
            account_id=account_id,
            product=change.product,
            quantity_added=quantity,
            arrival_date=arrival_date,
            po_number=po_number,
            supplier=supplier,
        )
        db.session.commit()
        return change.product, entry

    return run_with_retry(_op)
