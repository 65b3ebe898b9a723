from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..extensions import db
from ..errors import format_quantity
from stockflow.time_utils import to_utc_z

# Quantities are stored with 9 decimal places so piece-based issuance can
# leave fractional main-unit stock behind without drifting.
QUANTITY = db.Numeric(20, 9)

STATUS_IN_STOCK = "In Stock"
STATUS_LOW_STOCK = "Low Stock"
STATUS_OUT_OF_STOCK = "Out of Stock"
PRODUCT_STATUSES = (STATUS_IN_STOCK, STATUS_LOW_STOCK, STATUS_OUT_OF_STOCK)

UNIT_MODE_MAIN = "main"
UNIT_MODE_PIECES = "pieces"

PIECES_UNIT_NAME = "Pieces"
PIECES_UNIT_ABBREVIATION = "pcs"


@dataclass(frozen=True)
class UnitSnapshot:
    """Unit name/abbreviation copied onto a row at write time."""
    unit_id: int | None
    name: str
    abbreviation: str | None = None

    @classmethod
    def of(cls, unit) -> "UnitSnapshot":
        return cls(unit_id=unit.id, name=unit.name, abbreviation=unit.abbreviation)

    @classmethod
    def pieces(cls) -> "UnitSnapshot":
        return cls(unit_id=None, name=PIECES_UNIT_NAME, abbreviation=PIECES_UNIT_ABBREVIATION)

    @property
    def label(self) -> str:
        return self.abbreviation or self.name


class Product(db.Model):
    """
    Product master data with its current stock.

    stock_quantity is expressed in the product's main unit and never goes
    below zero. status is derived from stock_quantity (see
    stock_service.derive_status) and rewritten on every stock change.

    unit_id/unit_name/unit_abbreviation are a snapshot of the main unit
    taken at creation or edit time.
    """
    __tablename__ = "products"
    __table_args__ = (
        # SKUs are unique within an account
        db.UniqueConstraint("account_id", "sku", name="uq_products_account_sku"),
        db.Index("ix_products_account_name", "account_id", "name"),
        db.Index("ix_products_account_active", "account_id", "is_active"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("pieces_per_unit >= 1", name="ck_products_pieces_per_unit"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=True)

    stock_quantity = db.Column(QUANTITY, nullable=False, default=Decimal("0"))

    # Main unit snapshot
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=True)
    unit_name = db.Column(db.String(64), nullable=False)
    unit_abbreviation = db.Column(db.String(16), nullable=True)

    pieces_per_unit = db.Column(db.Integer, nullable=False, default=1)

    # Price per main unit, authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_OUT_OF_STOCK, index=True)
    low_stock_threshold = db.Column(QUANTITY, nullable=True)

    # Opaque reference into external object storage
    image_url = db.Column(db.String(1024), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock_quantity}>"

    @property
    def unit_snapshot(self) -> UnitSnapshot:
        return UnitSnapshot(
            unit_id=self.unit_id,
            name=self.unit_name,
            abbreviation=self.unit_abbreviation,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "stock_quantity": format_quantity(self.stock_quantity),
            "unit_id": self.unit_id,
            "unit_name": self.unit_name,
            "unit_abbreviation": self.unit_abbreviation,
            "pieces_per_unit": self.pieces_per_unit,
            "price_cents": self.price_cents,
            "status": self.status,
            "low_stock_threshold": (
                format_quantity(self.low_stock_threshold)
                if self.low_stock_threshold is not None else None
            ),
            "image_url": self.image_url,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class IncomingStockLog(db.Model):
    """
    Append-only record of a restock.

    arrival_date is business time; logged_at is system time of the write.
    Product name/SKU/unit are snapshots so the row stays readable after the
    product or unit changes.
    """
    __tablename__ = "incoming_stock_logs"
    __table_args__ = (
        db.Index("ix_incoming_logs_account_logged", "account_id", "logged_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)

    quantity_added = db.Column(QUANTITY, nullable=False)

    unit_id = db.Column(db.Integer, nullable=True)
    unit_name = db.Column(db.String(64), nullable=False)
    unit_abbreviation = db.Column(db.String(16), nullable=True)

    arrival_date = db.Column(db.Date, nullable=False)
    po_number = db.Column(db.String(64), nullable=True)
    supplier = db.Column(db.String(120), nullable=True)

    logged_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sku": self.sku,
            "quantity_added": format_quantity(self.quantity_added),
            "unit_id": self.unit_id,
            "unit_name": self.unit_name,
            "unit_abbreviation": self.unit_abbreviation,
            "arrival_date": self.arrival_date.isoformat(),
            "po_number": self.po_number,
            "supplier": self.supplier,
            "logged_at": to_utc_z(self.logged_at),
        }


class OutgoingStockLog(db.Model):
    """
    Append-only record of one issued cart line.

    quantity_removed is in the unit the line was issued in (main unit or
    pieces); stock_delta is the same amount in main units. All lines of one
    gate pass share gate_pass_id.
    """
    __tablename__ = "outgoing_stock_logs"
    __table_args__ = (
        db.Index("ix_outgoing_logs_account_pass", "account_id", "gate_pass_id"),
        db.Index("ix_outgoing_logs_account_logged", "account_id", "logged_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)

    quantity_removed = db.Column(QUANTITY, nullable=False)
    unit_mode = db.Column(db.String(16), nullable=False, default=UNIT_MODE_MAIN)
    stock_delta = db.Column(QUANTITY, nullable=False)

    # Unit actually selected at issuance (main unit snapshot or "pcs")
    unit_id = db.Column(db.Integer, nullable=True)
    unit_name = db.Column(db.String(64), nullable=False)
    unit_abbreviation = db.Column(db.String(16), nullable=True)

    destination = db.Column(db.String(255), nullable=True)
    reason = db.Column(db.String(255), nullable=True)
    gate_pass_id = db.Column(db.String(32), nullable=False, index=True)
    issued_to = db.Column(db.String(120), nullable=True)
    dispatch_date = db.Column(db.Date, nullable=True)

    logged_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sku": self.sku,
            "quantity_removed": format_quantity(self.quantity_removed),
            "unit_mode": self.unit_mode,
            "stock_delta": format_quantity(self.stock_delta),
            "unit_id": self.unit_id,
            "unit_name": self.unit_name,
            "unit_abbreviation": self.unit_abbreviation,
            "destination": self.destination,
            "reason": self.reason,
            "gate_pass_id": self.gate_pass_id,
            "issued_to": self.issued_to,
            "dispatch_date": self.dispatch_date.isoformat() if self.dispatch_date else None,
            "logged_at": to_utc_z(self.logged_at),
        }
