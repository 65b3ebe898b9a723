# Overview: Service-layer operations for stock logs; append-only audit trail and history reads.

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func

from ..errors import InvalidQuantity, ValidationFailed
from ..extensions import db
from ..models import IncomingStockLog, OutgoingStockLog, Product
from ..models.inventory import (
    STATUS_IN_STOCK,
    STATUS_LOW_STOCK,
    STATUS_OUT_OF_STOCK,
    UNIT_MODE_PIECES,
    UnitSnapshot,
)
from stockflow.time_utils import utcnow
from .unit_conversion import IssueResolution
"""
Stockflow Stock Log Invariants (authoritative)

- incoming_stock_logs and outgoing_stock_logs are append-only: this module
  only inserts; nothing in the codebase updates or deletes a log row.
- Rows are written inside the same DB transaction as the stock change they
  record (callers commit).
- arrival_date / dispatch_date are business dates; logged_at is system time
  assigned here at write time.
- Product name/SKU/unit are copied onto the row (UnitSnapshot), never joined
  back, so history reads the same after renames.
- Logs are the source of truth for history, dashboard counts and gate pass
  reconstruction (rows sharing gate_pass_id).
"""

DEFAULT_HISTORY_LIMIT = 200


def _require_product(product) -> None:
    if product is None or getattr(product, "id", None) is None:
        raise ValidationFailed("product is required", field="product_id")


def record_incoming(
    *,
    account_id: int,
    product: Product,
    quantity_added,
    arrival_date: date,
    po_number: str | None = None,
    supplier: str | None = None,
) -> IncomingStockLog:
    """Append one restock entry. Flushes (id assigned), does not commit."""
    _require_product(product)
    quantity = Decimal(quantity_added)
    if quantity <= 0:
        raise InvalidQuantity(quantity)
    if arrival_date is None:
        raise ValidationFailed("arrival_date is required", field="arrival_date")

    unit = product.unit_snapshot
    entry = IncomingStockLog(
        account_id=account_id,
        product_id=product.id,
        product_name=product.name,
        sku=product.sku,
        quantity_added=quantity,
        unit_id=unit.unit_id,
        unit_name=unit.name,
        unit_abbreviation=unit.abbreviation,
        arrival_date=arrival_date,
        po_number=po_number or None,
        supplier=supplier or None,
        logged_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def record_outgoing(
    *,
    account_id: int,
    product: Product,
    resolution: IssueResolution,
    gate_pass_id: str,
    destination: str | None = None,
    reason: str | None = None,
    issued_to: str | None = None,
    dispatch_date: date | None = None,
    logged_at: datetime | None = None,
) -> OutgoingStockLog:
    """
    Append one issued line tagged with gate_pass_id.

    The unit recorded is the one the line was issued in: the product's main
    unit snapshot, or "Pieces"/"pcs". Flushes, does not commit.
    """
    _require_product(product)
    if resolution.requested <= 0:
        raise InvalidQuantity(resolution.requested)
    if not gate_pass_id:
        raise ValidationFailed("gate_pass_id is required", field="gate_pass_id")

    unit = UnitSnapshot.pieces() if resolution.unit_mode == UNIT_MODE_PIECES else product.unit_snapshot
    entry = OutgoingStockLog(
        account_id=account_id,
        product_id=product.id,
        product_name=product.name,
        sku=product.sku,
        quantity_removed=resolution.requested,
        unit_mode=resolution.unit_mode,
        stock_delta=resolution.stock_delta,
        unit_id=unit.unit_id,
        unit_name=unit.name,
        unit_abbreviation=unit.abbreviation,
        destination=destination,
        reason=reason,
        gate_pass_id=gate_pass_id,
        issued_to=issued_to,
        dispatch_date=dispatch_date,
        logged_at=logged_at or utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


# =============================================================================
# History reads
# =============================================================================


def list_incoming(*, account_id: int, product_id: int | None = None, limit: int = DEFAULT_HISTORY_LIMIT):
    q = db.session.query(IncomingStockLog).filter_by(account_id=account_id)
    if product_id is not None:
        q = q.filter_by(product_id=product_id)
    return q.order_by(IncomingStockLog.logged_at.desc(), IncomingStockLog.id.desc()).limit(limit).all()


def list_outgoing(
    *,
    account_id: int,
    product_id: int | None = None,
    gate_pass_id: str | None = None,
    limit: int = DEFAULT_HISTORY_LIMIT,
):
    q = db.session.query(OutgoingStockLog).filter_by(account_id=account_id)
    if product_id is not None:
        q = q.filter_by(product_id=product_id)
    if gate_pass_id is not None:
        q = q.filter_by(gate_pass_id=gate_pass_id)
    return q.order_by(OutgoingStockLog.logged_at.desc(), OutgoingStockLog.id.desc()).limit(limit).all()


def entries_for_gate_pass(*, account_id: int, gate_pass_id: str) -> list[OutgoingStockLog]:
    """All lines of one gate pass, in the order they were written."""
    return (
        db.session.query(OutgoingStockLog)
        .filter_by(account_id=account_id, gate_pass_id=gate_pass_id)
        .order_by(OutgoingStockLog.id.asc())
        .all()
    )


def gate_pass_id_exists(*, account_id: int, gate_pass_id: str) -> bool:
    return db.session.query(
        db.session.query(OutgoingStockLog.id)
        .filter_by(account_id=account_id, gate_pass_id=gate_pass_id)
        .exists()
    ).scalar()


def product_history(*, account_id: int, product_id: int, limit: int = DEFAULT_HISTORY_LIMIT) -> dict:
    return {
        "product_id": product_id,
        "incoming": [e.to_dict() for e in list_incoming(account_id=account_id, product_id=product_id, limit=limit)],
        "outgoing": [e.to_dict() for e in list_outgoing(account_id=account_id, product_id=product_id, limit=limit)],
    }


def dashboard_summary(*, account_id: int, days: int = 7) -> dict:
    """Counts for the dashboard cards, computed from products and logs."""
    since = utcnow() - timedelta(days=days)

    status_rows = (
        db.session.query(Product.status, func.count(Product.id))
        .filter(Product.account_id == account_id, Product.is_active.is_(True))
        .group_by(Product.status)
        .all()
    )
    by_status = {status: count for status, count in status_rows}

    incoming_recent = (
        db.session.query(func.count(IncomingStockLog.id))
        .filter(IncomingStockLog.account_id == account_id, IncomingStockLog.logged_at >= since)
        .scalar()
    )
    outgoing_recent = (
        db.session.query(func.count(OutgoingStockLog.id))
        .filter(OutgoingStockLog.account_id == account_id, OutgoingStockLog.logged_at >= since)
        .scalar()
    )
    gate_passes_recent = (
        db.session.query(func.count(func.distinct(OutgoingStockLog.gate_pass_id)))
        .filter(OutgoingStockLog.account_id == account_id, OutgoingStockLog.logged_at >= since)
        .scalar()
    )

    return {
        "days": days,
        "total_products": sum(by_status.values()),
        "in_stock": by_status.get(STATUS_IN_STOCK, 0),
        "low_stock": by_status.get(STATUS_LOW_STOCK, 0),
        "out_of_stock": by_status.get(STATUS_OUT_OF_STOCK, 0),
        "incoming_entries": int(incoming_recent or 0),
        "outgoing_entries": int(outgoing_recent or 0),
        "gate_passes": int(gate_passes_recent or 0),
    }
