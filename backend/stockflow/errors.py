# Overview: Domain error taxonomy shared by services and routes.

"""
Stockflow error taxonomy.

Every error raised by the service layer derives from StockflowError so
routes can map it to an HTTP status without inspecting messages. Errors
raised before any I/O (ValidationFailed, InvalidQuantity) guarantee that
no state has changed.
"""

from __future__ import annotations

from decimal import Decimal


class StockflowError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(StockflowError, ValueError):
    """A required field is missing or malformed (400)."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class ConflictError(StockflowError, ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class InvalidCredential(StockflowError):
    """Re-authentication rejected: wrong password."""

    def __init__(self, message: str = "Wrong password"):
        super().__init__(message)


class ReauthenticationError(StockflowError):
    """Identity provider failed for a reason other than a wrong password."""


class ProductNotFound(StockflowError):
    def __init__(self, product_id):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class UnitNotFound(StockflowError):
    def __init__(self, unit_id):
        super().__init__(f"Unit {unit_id} not found")
        self.unit_id = unit_id


class GatePassNotFound(StockflowError):
    def __init__(self, gate_pass_id: str):
        super().__init__(f"Gate pass {gate_pass_id} not found")
        self.gate_pass_id = gate_pass_id


class InvalidQuantity(StockflowError, ValueError):
    def __init__(self, quantity, message: str | None = None):
        super().__init__(message or f"Quantity must be greater than zero (got {quantity})")
        self.quantity = quantity


class InvalidUnitConfiguration(StockflowError):
    """Product cannot be issued by piece: pieces_per_unit missing or < 1."""

    def __init__(self, product_id, pieces_per_unit=None):
        super().__init__(
            f"Product {product_id} has an invalid pieces-per-unit value ({pieces_per_unit})"
        )
        self.product_id = product_id
        self.pieces_per_unit = pieces_per_unit


class InsufficientStock(StockflowError):
    def __init__(
        self,
        *,
        product_id,
        product_name: str,
        requested: Decimal,
        available: Decimal,
        unit_label: str,
    ):
        super().__init__(
            f"Insufficient stock for {product_name}: only "
            f"{format_quantity(available)} {unit_label} available"
        )
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        self.unit_label = unit_label


class StoreUnavailable(StockflowError):
    """The database could not be read or written."""

    def __init__(self, message: str = "Data store unavailable"):
        super().__init__(message)


def format_quantity(value) -> str:
    """Render a Decimal quantity without trailing zeros ("5", "2.5")."""
    if value is None:
        return "0"
    d = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    if d == d.to_integral_value():
        return str(d.quantize(Decimal(1)))
    return format(d.normalize(), "f")
