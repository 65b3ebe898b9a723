# Overview: Service-layer operations for gate passes; issuance workflow, lookup and reprint.

"""
Gate Pass Issuance

A gate pass authorizes a cart of items to leave the shop. Issuing one:

    IDLE -> VALIDATING_FORM -> AWAITING_REAUTH -> AUTHENTICATED
         -> MUTATING -> AUDITING -> RENDERED

- VALIDATING_FORM: customer, authorizer, dispatch date and a non-empty cart
  are required. Failure returns to IDLE (ValidationFailed), nothing read
  or written.
- AWAITING_REAUTH: the caller's password is re-checked against the active
  session (auth_service.reauthenticate). Failure returns to IDLE with zero
  mutations.
- AUTHENTICATED: one id "GP-<epoch millis>" is minted for the whole cart.
- MUTATING: every line is decremented. All lines are attempted so every
  failing line is reported, not only the first.
- AUDITING: one outgoing log row per line, all tagged with the pass id.
- RENDERED: the printable text is generated from the committed rows.

All decrements and log rows share ONE database transaction. Any failure
after authentication (insufficient stock, concurrent change that outlives
the retries, store error) rolls every line back and ends in
PARTIALLY_FAILED; no line is ever left committed on its own.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..errors import (
    GatePassNotFound,
    InvalidCredential,
    ReauthenticationError,
    StockflowError,
    StoreUnavailable,
    ValidationFailed,
    format_quantity,
)
from ..extensions import db
from ..models import OutgoingStockLog
from ..time_utils import epoch_millis, parse_business_date, to_utc_z, utcnow
from ..validation import coerce_decimal, enforce_quantity_limits
from . import auth_service
from .concurrency import run_with_retry
from .gate_pass_renderer import render_gate_pass_text
from .profile_service import get_shop_details
from .session_service import SessionContext
from .stock_log_service import entries_for_gate_pass, gate_pass_id_exists, record_outgoing
from .stock_service import _decrement_inner
from .unit_conversion import normalize_unit_mode

GATE_PASS_PREFIX = "GP"
MAX_CART_LINES = 100


class IssuanceState(str, enum.Enum):
    IDLE = "IDLE"
    VALIDATING_FORM = "VALIDATING_FORM"
    AWAITING_REAUTH = "AWAITING_REAUTH"
    AUTHENTICATED = "AUTHENTICATED"
    MUTATING = "MUTATING"
    AUDITING = "AUDITING"
    RENDERED = "RENDERED"
    PARTIALLY_FAILED = "PARTIALLY_FAILED"


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: Decimal
    unit_mode: str


@dataclass(frozen=True)
class GatePassRequest:
    customer: str
    authorized_by: str
    dispatch_date: date | None
    items: list[CartLine]
    reason: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "GatePassRequest":
        """
        Build a request from JSON. Only types are checked here; required
        fields are enforced by validate_request so the workflow reports them.
        """
        if not isinstance(payload, dict):
            raise ValidationFailed("Invalid JSON payload")

        raw_items = payload.get("items") or []
        if not isinstance(raw_items, list):
            raise ValidationFailed("items must be a list", field="items")
        if len(raw_items) > MAX_CART_LINES:
            raise ValidationFailed(f"at most {MAX_CART_LINES} items per gate pass", field="items")

        items = []
        for index, raw in enumerate(raw_items, start=1):
            if not isinstance(raw, dict):
                raise ValidationFailed(f"items[{index}] must be an object", field="items")
            product_id = raw.get("product_id")
            if isinstance(product_id, bool) or not isinstance(product_id, int):
                raise ValidationFailed(f"items[{index}].product_id must be an integer", field="items")
            if raw.get("quantity") is None:
                raise ValidationFailed(f"items[{index}].quantity is required", field="items")
            items.append(CartLine(
                product_id=product_id,
                quantity=coerce_decimal(raw.get("quantity"), f"items[{index}].quantity"),
                unit_mode=normalize_unit_mode(raw.get("unit_mode")),
            ))

        try:
            dispatch_date = parse_business_date(payload.get("dispatch_date"))
        except ValueError:
            raise ValidationFailed("dispatch_date must be an ISO-8601 date", field="dispatch_date")

        reason = str(payload.get("reason") or "").strip() or None
        return cls(
            customer=str(payload.get("customer") or "").strip(),
            authorized_by=str(payload.get("authorized_by") or "").strip(),
            dispatch_date=dispatch_date,
            items=items,
            reason=reason,
        )


@dataclass(frozen=True)
class GatePassLine:
    serial: int
    product_id: int
    product_name: str
    sku: str | None
    quantity: Decimal
    unit_label: str


@dataclass(frozen=True)
class GatePass:
    """A pass reconstructed from the outgoing log rows sharing its id."""
    id: str
    customer: str
    authorized_by: str
    dispatch_date: date | None
    reason: str | None
    issued_at: datetime
    lines: tuple[GatePassLine, ...]

    @property
    def total_items(self) -> int:
        return len(self.lines)

    @property
    def total_quantity(self) -> Decimal:
        return sum((line.quantity for line in self.lines), Decimal("0"))

    @property
    def scan_payload(self) -> str:
        """What the scannable code encodes: the raw pass id only."""
        return self.id

    @classmethod
    def from_log_entries(cls, entries: list[OutgoingStockLog]) -> "GatePass":
        if not entries:
            raise ValueError("a gate pass needs at least one log entry")
        ordered = sorted(entries, key=lambda e: e.id)
        first = ordered[0]
        lines = tuple(
            GatePassLine(
                serial=i,
                product_id=e.product_id,
                product_name=e.product_name,
                sku=e.sku,
                quantity=Decimal(e.quantity_removed),
                unit_label=e.unit_abbreviation or e.unit_name,
            )
            for i, e in enumerate(ordered, start=1)
        )
        return cls(
            id=first.gate_pass_id,
            customer=first.destination or "",
            authorized_by=first.issued_to or "",
            dispatch_date=first.dispatch_date,
            reason=first.reason,
            issued_at=min(e.logged_at for e in ordered),
            lines=lines,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer": self.customer,
            "authorized_by": self.authorized_by,
            "dispatch_date": self.dispatch_date.isoformat() if self.dispatch_date else None,
            "reason": self.reason,
            "issued_at": to_utc_z(self.issued_at),
            "total_items": self.total_items,
            "total_quantity": format_quantity(self.total_quantity),
            "scan_payload": self.scan_payload,
            "lines": [
                {
                    "serial": line.serial,
                    "product_id": line.product_id,
                    "product_name": line.product_name,
                    "sku": line.sku,
                    "quantity": format_quantity(line.quantity),
                    "unit": line.unit_label,
                }
                for line in self.lines
            ],
        }


@dataclass(frozen=True)
class LineFailure:
    serial: int
    product_id: int
    error: StockflowError

    @property
    def message(self) -> str:
        return self.error.message

    def to_dict(self) -> dict:
        return {
            "line": self.serial,
            "product_id": self.product_id,
            "error": type(self.error).__name__,
            "message": self.message,
        }


class IssuanceFailed(StockflowError):
    """One or more cart lines could not be issued; nothing was committed."""

    def __init__(self, failures: list[LineFailure]):
        super().__init__("; ".join(f.message for f in failures) or "Gate pass issuance failed")
        self.failures = failures


@dataclass
class IssuedGatePass:
    gate_pass: GatePass
    document_text: str

    @property
    def scan_payload(self) -> str:
        return self.gate_pass.scan_payload


def default_reason(dispatch_date: date | None) -> str | None:
    if dispatch_date is None:
        return None
    return f"Dispatched on {dispatch_date.strftime('%b %d, %Y')}"


def validate_request(request: GatePassRequest) -> None:
    """Form checks done before any I/O; raises ValidationFailed naming the field."""
    if not request.authorized_by:
        raise ValidationFailed("Authorized by is required", field="authorized_by")
    if not request.customer:
        raise ValidationFailed("Customer is required", field="customer")
    if request.dispatch_date is None:
        raise ValidationFailed("Dispatch date is required", field="dispatch_date")
    if not request.items:
        raise ValidationFailed("Add at least one item to the gate pass", field="items")
    for index, line in enumerate(request.items, start=1):
        if line.quantity <= 0:
            raise ValidationFailed(f"Quantity for item {index} must be greater than zero", field="items")
        enforce_quantity_limits(line.quantity, f"items[{index}].quantity")


def new_gate_pass_id(account_id: int, now: datetime | None = None) -> str:
    """
    Mint "GP-<epoch millis>", unique within the account.

    Two passes minted in the same millisecond get consecutive numbers.
    """
    millis = epoch_millis(now or utcnow())
    candidate = f"{GATE_PASS_PREFIX}-{millis}"
    while gate_pass_id_exists(account_id=account_id, gate_pass_id=candidate):
        millis += 1
        candidate = f"{GATE_PASS_PREFIX}-{millis}"
    return candidate


class GatePassIssuance:
    """One issuance attempt; `state` follows the workflow in the module docstring."""

    def __init__(self, context: SessionContext, request: GatePassRequest):
        self.context = context
        self.request = request
        self.state = IssuanceState.IDLE
        self.history: list[IssuanceState] = [IssuanceState.IDLE]
        self.gate_pass_id: str | None = None
        self.failures: list[LineFailure] = []

    def _transition(self, state: IssuanceState) -> None:
        self.state = state
        self.history.append(state)

    def submit(self, password: str) -> IssuedGatePass:
        logger = current_app.logger
        account_id = self.context.account_id

        self._transition(IssuanceState.VALIDATING_FORM)
        try:
            validate_request(self.request)
        except ValidationFailed:
            self._transition(IssuanceState.IDLE)
            raise

        self._transition(IssuanceState.AWAITING_REAUTH)
        try:
            auth_service.reauthenticate(self.context, password)
        except (InvalidCredential, ReauthenticationError) as exc:
            self._transition(IssuanceState.IDLE)
            logger.warning("Gate pass rejected for account %s: %s", account_id, exc.message)
            raise
        self._transition(IssuanceState.AUTHENTICATED)

        try:
            entries = run_with_retry(self._commit)
        except (IssuanceFailed, StoreUnavailable) as exc:
            self._transition(IssuanceState.PARTIALLY_FAILED)
            logger.warning(
                "Gate pass %s failed for account %s, rolled back: %s",
                self.gate_pass_id, account_id, exc.message,
            )
            raise

        gate_pass = GatePass.from_log_entries(entries)
        text = render_gate_pass_text(
            gate_pass,
            get_shop_details(account_id),
            width=current_app.config.get("GATE_PASS_LINE_WIDTH", 42),
        )
        self._transition(IssuanceState.RENDERED)
        logger.info(
            "Issued gate pass %s for account %s (%d lines)",
            gate_pass.id, account_id, gate_pass.total_items,
        )
        return IssuedGatePass(gate_pass=gate_pass, document_text=text)

    def _commit(self) -> list[OutgoingStockLog]:
        account_id = self.context.account_id
        request = self.request

        # Minted per attempt: a retried attempt re-checks uniqueness
        self.gate_pass_id = new_gate_pass_id(account_id)
        self.failures = []

        self._transition(IssuanceState.MUTATING)
        changes = []
        for serial, line in enumerate(request.items, start=1):
            try:
                changes.append(_decrement_inner(
                    account_id=account_id,
                    product_id=line.product_id,
                    quantity_to_remove=line.quantity,
                    unit_mode=line.unit_mode,
                ))
            except StoreUnavailable:
                raise
            except StockflowError as exc:
                self.failures.append(LineFailure(serial=serial, product_id=line.product_id, error=exc))

        if self.failures:
            raise IssuanceFailed(self.failures)

        self._transition(IssuanceState.AUDITING)
        logged_at = utcnow()
        reason = request.reason or default_reason(request.dispatch_date)
        entries = [
            record_outgoing(
                account_id=account_id,
                product=change.product,
                resolution=change.resolution,
                gate_pass_id=self.gate_pass_id,
                destination=request.customer,
                reason=reason,
                issued_to=request.authorized_by,
                dispatch_date=request.dispatch_date,
                logged_at=logged_at,
            )
            for change in changes
        ]
        db.session.commit()
        return entries


def issue_gate_pass(context: SessionContext, request: GatePassRequest, password: str) -> IssuedGatePass:
    """
    Issue a gate pass for `request` on behalf of `context`.

    Raises:
        ValidationFailed: form incomplete (nothing read or written)
        InvalidCredential / ReauthenticationError: re-auth failed (nothing written)
        IssuanceFailed: one or more lines rejected; `.failures` lists them
        StoreUnavailable: database error; everything rolled back
    """
    return GatePassIssuance(context, request).submit(password)


# =============================================================================
# Lookup / reprint
# =============================================================================


def get_gate_pass(account_id: int, gate_pass_id: str) -> GatePass:
    gate_pass_id = (gate_pass_id or "").strip()
    entries = entries_for_gate_pass(account_id=account_id, gate_pass_id=gate_pass_id)
    if not entries:
        raise GatePassNotFound(gate_pass_id)
    return GatePass.from_log_entries(entries)


def render_gate_pass(account_id: int, gate_pass_id: str) -> str:
    """Regenerate the printable text of a stored pass."""
    gate_pass = get_gate_pass(account_id, gate_pass_id)
    return render_gate_pass_text(
        gate_pass,
        get_shop_details(account_id),
        width=current_app.config.get("GATE_PASS_LINE_WIDTH", 42),
    )


def list_gate_passes(account_id: int, *, limit: int = 50) -> list[dict]:
    """Newest passes first, one summary row per gate_pass_id."""
    rows = (
        db.session.query(
            OutgoingStockLog.gate_pass_id,
            func.min(OutgoingStockLog.logged_at).label("issued_at"),
            func.count(OutgoingStockLog.id).label("total_items"),
            func.sum(OutgoingStockLog.quantity_removed).label("total_quantity"),
            func.min(OutgoingStockLog.destination).label("customer"),
            func.min(OutgoingStockLog.issued_to).label("authorized_by"),
        )
        .filter(OutgoingStockLog.account_id == account_id)
        .group_by(OutgoingStockLog.gate_pass_id)
        .order_by(func.min(OutgoingStockLog.logged_at).desc(), OutgoingStockLog.gate_pass_id.desc())
        .limit(limit)
        .all()
    )

    return [
        {
            "id": r.gate_pass_id,
            "issued_at": to_utc_z(r.issued_at),
            "total_items": int(r.total_items),
            "total_quantity": format_quantity(r.total_quantity),
            "customer": r.customer,
            "authorized_by": r.authorized_by,
        }
        for r in rows
    ]
