# Overview: Service-layer operations for stock levels; encapsulates business logic and database work.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app

from ..errors import InsufficientStock, InvalidQuantity, ProductNotFound
from ..extensions import db
from ..models import Product
from ..models.inventory import (
    PIECES_UNIT_ABBREVIATION,
    STATUS_IN_STOCK,
    STATUS_LOW_STOCK,
    STATUS_OUT_OF_STOCK,
    UNIT_MODE_PIECES,
)
from ..validation import MAX_QUANTITY, QUANTITY_MIN_EXPONENT
from .concurrency import lock_for_update, run_with_retry
from .unit_conversion import IssueResolution, normalize_unit_mode, quantize_stock, resolve_issue
"""
Stockflow Stock Invariants (authoritative)

- Product.stock_quantity is the current stock in main units and is never
  persisted below zero.
- Product.status is a pure function of stock_quantity and the low-stock
  threshold (product override, else LOW_STOCK_THRESHOLD):
    stock <= 0                  -> Out of Stock
    0 < stock <= threshold      -> Low Stock   (threshold > 0 only)
    otherwise                   -> In Stock
- Every mutation is read-validate-write: all checks run against the row
  read in the same transaction, before anything is written.
- Product.version_id turns a concurrent write into StaleDataError, which
  run_with_retry retries with fresh reads.
- Stock changes only touch stock_quantity and status.
"""


@dataclass(frozen=True)
class StockChange:
    product: Product
    previous_quantity: Decimal
    new_quantity: Decimal
    resolution: IssueResolution | None = None


def low_stock_threshold_for(product: Product) -> Decimal:
    if product.low_stock_threshold is not None:
        return Decimal(product.low_stock_threshold)
    return Decimal(current_app.config.get("LOW_STOCK_THRESHOLD", 0) or 0)


def derive_status(stock_quantity: Decimal, low_stock_threshold: Decimal | None = None) -> str:
    stock = Decimal(stock_quantity)
    if stock <= 0:
        return STATUS_OUT_OF_STOCK
    threshold = Decimal(low_stock_threshold or 0)
    if threshold > 0 and stock <= threshold:
        return STATUS_LOW_STOCK
    return STATUS_IN_STOCK


def refresh_status(product: Product) -> str:
    product.status = derive_status(product.stock_quantity, low_stock_threshold_for(product))
    return product.status


def get_product_for_update(account_id: int, product_id: int, *, lock: bool = True) -> Product:
    """Load an active product owned by the account, or raise ProductNotFound."""
    query = db.session.query(Product).filter_by(id=product_id, account_id=account_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None or not product.is_active:
        raise ProductNotFound(product_id)
    return product


def _check_quantity(quantity) -> Decimal:
    try:
        value = Decimal(quantity)
    except (TypeError, ArithmeticError, ValueError):
        raise InvalidQuantity(quantity)
    if not value.is_finite() or value <= 0:
        raise InvalidQuantity(quantity)
    if value > MAX_QUANTITY:
        raise InvalidQuantity(quantity, f"Quantity cannot exceed {MAX_QUANTITY} (got {quantity})")
    if value.normalize().as_tuple().exponent < QUANTITY_MIN_EXPONENT:
        raise InvalidQuantity(quantity, f"Quantity cannot have more than 9 decimal places (got {quantity})")
    return value


def _increment_inner(*, account_id: int, product_id: int, quantity_to_add) -> StockChange:
    """Core increment logic without retry or commit."""
    quantity = _check_quantity(quantity_to_add)
    product = get_product_for_update(account_id, product_id)

    previous = Decimal(product.stock_quantity)
    product.stock_quantity = quantize_stock(previous + quantity)
    refresh_status(product)
    db.session.flush()

    return StockChange(product=product, previous_quantity=previous, new_quantity=product.stock_quantity)


def increment(*, account_id: int, product_id: int, quantity_to_add) -> StockChange:
    """
    Add stock (restock) in main units.

    Raises InvalidQuantity (quantity <= 0) before any read, ProductNotFound
    if the product is missing, inactive or owned by another account.
    """
    def _op():
        change = _increment_inner(account_id=account_id, product_id=product_id, quantity_to_add=quantity_to_add)
        db.session.commit()
        return change

    return run_with_retry(_op)


def _decrement_inner(*, account_id: int, product_id: int, quantity_to_remove, unit_mode) -> StockChange:
    """
    Core decrement logic without retry or commit.

    Called by both the public decrement() and the gate pass issuance, which
    runs several of these inside one transaction.
    """
    quantity = _check_quantity(quantity_to_remove)
    unit_mode = normalize_unit_mode(unit_mode)
    product = get_product_for_update(account_id, product_id)

    resolution = resolve_issue(
        stock_quantity=product.stock_quantity,
        pieces_per_unit=product.pieces_per_unit,
        quantity=quantity,
        unit_mode=unit_mode,
        product_id=product.id,
    )
    if not resolution.sufficient:
        unit_label = (
            PIECES_UNIT_ABBREVIATION if unit_mode == UNIT_MODE_PIECES else product.unit_snapshot.label
        )
        raise InsufficientStock(
            product_id=product.id,
            product_name=product.name,
            requested=resolution.requested,
            available=resolution.available,
            unit_label=unit_label,
        )

    product.stock_quantity = resolution.new_stock
    refresh_status(product)
    db.session.flush()

    return StockChange(
        product=product,
        previous_quantity=resolution.previous_stock,
        new_quantity=resolution.new_stock,
        resolution=resolution,
    )


def decrement(*, account_id: int, product_id: int, quantity_to_remove, unit_mode) -> StockChange:
    """
    Remove stock, expressed in the product's main unit or in pieces.

    Raises (all before any write):
        InvalidQuantity: quantity <= 0
        ValidationFailed: unknown unit_mode
        ProductNotFound
        InvalidUnitConfiguration: pieces requested, pieces_per_unit < 1
        InsufficientStock: request exceeds stock in the requested unit
    """
    def _op():
        change = _decrement_inner(
            account_id=account_id,
            product_id=product_id,
            quantity_to_remove=quantity_to_remove,
            unit_mode=unit_mode,
        )
        db.session.commit()
        return change

    return run_with_retry(_op)
