# Overview: Maps domain errors to JSON error responses for the route layer.

from flask import jsonify

from .errors import (
    ConflictError,
    GatePassNotFound,
    InsufficientStock,
    InvalidCredential,
    InvalidQuantity,
    InvalidUnitConfiguration,
    ProductNotFound,
    ReauthenticationError,
    StockflowError,
    StoreUnavailable,
    UnitNotFound,
    ValidationFailed,
    format_quantity,
)

# Checked in order; first match wins
ERROR_STATUS = (
    (ValidationFailed, 400),
    (InvalidQuantity, 400),
    (InvalidCredential, 403),
    (ProductNotFound, 404),
    (UnitNotFound, 404),
    (GatePassNotFound, 404),
    (ConflictError, 409),
    (InsufficientStock, 409),
    (InvalidUnitConfiguration, 422),
    (ReauthenticationError, 502),
    (StoreUnavailable, 503),
)


def status_for(exc: StockflowError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 400


def error_body(exc: StockflowError) -> dict:
    body = {"error": exc.message}
    if isinstance(exc, ValidationFailed) and exc.field:
        body["field"] = exc.field
    if isinstance(exc, InsufficientStock):
        body["product_id"] = exc.product_id
        body["available"] = format_quantity(exc.available)
        body["unit"] = exc.unit_label
    return body


def json_error(exc: StockflowError):
    return jsonify(error_body(exc)), status_for(exc)
