# Overview: Pure conversion between a product's main unit and pieces.

"""
Unit conversion for stock issuance.

A product counts stock in its main unit (box, kg, ...). pieces_per_unit
converts one main unit into pieces. Issuance requests can be expressed in
either unit; this module turns them into:

- the maximum quantity issuable in the requested unit, and
- the new main-unit stock after the request.

Rules:
- PIECES requires pieces_per_unit >= 1, otherwise InvalidUnitConfiguration.
- Availability is compared in the requested unit's space, so a pieces
  request is never rejected because of main-unit rounding.
- Piece-space values are quantized to PIECE_EXPONENT; main-unit stock to
  STOCK_EXPONENT. A request that isn't a multiple of pieces_per_unit leaves
  fractional main-unit stock behind.
- The new stock is floored at zero.

No I/O happens here.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN

from ..errors import InvalidQuantity, InvalidUnitConfiguration, ValidationFailed
from ..models.inventory import UNIT_MODE_MAIN, UNIT_MODE_PIECES

STOCK_EXPONENT = Decimal("0.000000001")
PIECE_EXPONENT = Decimal("0.001")
ZERO = Decimal("0")

_UNIT_MODE_ALIASES = {
    "main": UNIT_MODE_MAIN,
    "unit": UNIT_MODE_MAIN,
    "pieces": UNIT_MODE_PIECES,
    "piece": UNIT_MODE_PIECES,
    "pcs": UNIT_MODE_PIECES,
}


@dataclass(frozen=True)
class IssueResolution:
    unit_mode: str
    requested: Decimal           # in the requested unit
    available: Decimal           # max issuable, in the requested unit
    previous_stock: Decimal      # main units
    new_stock: Decimal           # main units, floored at zero

    @property
    def sufficient(self) -> bool:
        return self.requested <= self.available

    @property
    def stock_delta(self) -> Decimal:
        """Main units actually removed."""
        return self.previous_stock - self.new_stock


def normalize_unit_mode(value) -> str:
    """Map client spellings ("main", "MAIN", "pcs", ...) to a unit mode."""
    if value is None:
        return UNIT_MODE_MAIN
    mode = _UNIT_MODE_ALIASES.get(str(value).strip().lower())
    if mode is None:
        raise ValidationFailed(f"unit_mode must be 'main' or 'pieces' (got {value!r})", field="unit_mode")
    return mode


def quantize_stock(value: Decimal) -> Decimal:
    return Decimal(value).quantize(STOCK_EXPONENT, rounding=ROUND_HALF_EVEN)


def stock_in_pieces(stock_quantity: Decimal, pieces_per_unit: int) -> Decimal:
    """Current stock expressed in pieces."""
    return (Decimal(stock_quantity) * pieces_per_unit).quantize(PIECE_EXPONENT, rounding=ROUND_HALF_EVEN)


def _check_pieces_per_unit(pieces_per_unit, product_id=None) -> None:
    if pieces_per_unit is None or isinstance(pieces_per_unit, bool) or int(pieces_per_unit) < 1:
        raise InvalidUnitConfiguration(product_id, pieces_per_unit)


def max_issuable(stock_quantity: Decimal, pieces_per_unit: int, unit_mode: str, *, product_id=None) -> Decimal:
    """Largest quantity that can be issued in unit_mode."""
    stock = max(Decimal(stock_quantity), ZERO)
    if unit_mode == UNIT_MODE_PIECES:
        _check_pieces_per_unit(pieces_per_unit, product_id)
        return stock_in_pieces(stock, int(pieces_per_unit))
    return stock


def resolve_issue(
    *,
    stock_quantity: Decimal,
    pieces_per_unit: int,
    quantity: Decimal,
    unit_mode: str,
    product_id=None,
) -> IssueResolution:
    """
    Work out what issuing `quantity` in `unit_mode` does to main-unit stock.

    The caller decides what to do with an insufficient resolution; the
    returned new_stock equals the previous stock when it is insufficient.
    """
    quantity = Decimal(quantity)
    if quantity <= 0:
        raise InvalidQuantity(quantity)

    unit_mode = normalize_unit_mode(unit_mode)
    previous = Decimal(stock_quantity)
    available = max_issuable(previous, pieces_per_unit, unit_mode, product_id=product_id)

    if quantity > available:
        # Insufficient: stock is left as it was
        new_stock = quantize_stock(previous)
    elif unit_mode == UNIT_MODE_PIECES:
        new_stock = quantize_stock((available - quantity) / int(pieces_per_unit))
    else:
        new_stock = quantize_stock(previous - quantity)

    if new_stock < 0:
        new_stock = ZERO.quantize(STOCK_EXPONENT)

    return IssueResolution(
        unit_mode=unit_mode,
        requested=quantity,
        available=available,
        previous_stock=previous,
        new_stock=new_stock,
    )
