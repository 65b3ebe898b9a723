from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from stockflow.time_utils import parse_iso_datetime, parse_business_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationFailed


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Largest quantity accepted in a single request (main units or pieces)
MAX_QUANTITY = Decimal("1000000000")
# Finest quantity the Numeric(20, 9) columns can hold
QUANTITY_MIN_EXPONENT = -9


class ValidationError(ValidationFailed):
    """400-level input problem."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_decimal(value: Any, field: str) -> Decimal:
    """Strictly convert JSON input to Decimal (rejects bools, NaN, infinity)."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, int):
        d = Decimal(value)
    elif isinstance(value, float):
        # str() keeps the shortest repr so 0.1 stays 0.1
        d = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number", field=field)
        try:
            d = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number", field=field)
    else:
        raise ValidationError(f"{field} must be a number", field=field)

    if not d.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    return d


def enforce_quantity_limits(value: Decimal, field: str) -> None:
    """Reject quantities above MAX_QUANTITY or finer than the stored precision."""
    if value > MAX_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY}", field=field)
    # normalize() drops trailing zeros so "1.0000000000" still passes
    if Decimal(value).normalize().as_tuple().exponent < QUANTITY_MIN_EXPONENT:
        raise ValidationError(f"{field} cannot have more than 9 decimal places", field=field)


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer", field=col.key)
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(
                    f"{col.key} must be a plain integer (scientific notation not allowed)",
                    field=col.key,
                )
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)", field=col.key)
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer", field=col.key)
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal", field=col.key)
        # Other types
        raise ValidationError(f"{col.key} must be an integer", field=col.key)

    # Quantities
    if isinstance(coltype, Numeric):
        return coerce_decimal(value, col.key)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", field=col.key)
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", field=col.key)
            return dt
        raise ValidationError(f"{col.key} must be a datetime", field=col.key)

    # Business dates
    if isinstance(coltype, Date):
        try:
            d = parse_business_date(value)
        except ValueError:
            raise ValidationError(f"{col.key} must be an ISO-8601 date", field=col.key)
        if d is None:
            raise ValidationError(f"{col.key} must be an ISO-8601 date", field=col.key)
        return d

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", field=k)
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}", field=k)

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", field=k)
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", field=k)

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", field=k)

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "price_cents" in patch and patch["price_cents"] is not None:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price_cents must be >= 0", field="price_cents")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(
                f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})",
                field="price_cents",
            )

    if "pieces_per_unit" in patch:
        ppu = patch["pieces_per_unit"]
        if ppu is None or ppu < 1:
            raise ValidationError("pieces_per_unit must be >= 1", field="pieces_per_unit")

    if "stock_quantity" in patch and patch["stock_quantity"] is not None:
        qty = patch["stock_quantity"]
        if qty < 0:
            raise ValidationError("stock_quantity must be >= 0", field="stock_quantity")
        if qty > MAX_QUANTITY:
            raise ValidationError(f"stock_quantity cannot exceed {MAX_QUANTITY}", field="stock_quantity")

    if "low_stock_threshold" in patch and patch["low_stock_threshold"] is not None:
        if patch["low_stock_threshold"] < 0:
            raise ValidationError("low_stock_threshold must be >= 0", field="low_stock_threshold")


def enforce_rules_stock_incoming(patch: dict) -> None:
    # Restock requires qty > 0 and a business arrival date
    qty = patch.get("quantity_added")
    if qty is None or qty <= 0:
        raise ValidationError("quantity_added must be > 0", field="quantity_added")
    enforce_quantity_limits(qty, "quantity_added")

    if patch.get("arrival_date") is None:
        raise ValidationError("arrival_date is required", field="arrival_date")
