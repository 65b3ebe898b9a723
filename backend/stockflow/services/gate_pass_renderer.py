# Overview: Fixed-width text rendering of a gate pass for receipt printers.

"""
Gate pass document layout (monospace, `width` columns, default 42):

    ==========================================
                  <shop name>
                   <address>
                Tel: <contact>
    ==========================================
                    GATE PASS
    ------------------------------------------
    Pass No : 000000
    Date    : Oct 19, 2026
    Time    : 14:05 UTC
    Customer: ...
    Auth By : ...
    Dispatch: Oct 20, 2026
    Pass ID : GP-1760882700000
    ------------------------------------------
    #  Item                       Qty Unit
    ------------------------------------------
    1  Widget                       5 box
       SKU: W-1
    ------------------------------------------
    Total Items: 1             Total Qty: 5
    ==========================================

    Authorized By:        Received By:

    ____________________  ____________________
    <authorizer>          <customer>

The text is a pure function of its inputs, so reprinting from the stored
log entries reproduces the original document.
"""

from __future__ import annotations

import textwrap

from ..errors import format_quantity

DEFAULT_WIDTH = 42
SERIAL_WIDTH = 3
QTY_WIDTH = 9
UNIT_WIDTH = 6


def _fit(text: str, width: int) -> str:
    """Truncate to width (marking the cut with '..') and pad with spaces."""
    text = (text or "").replace("\n", " ")
    if len(text) > width:
        text = text[: max(width - 2, 0)] + ".." if width > 2 else text[:width]
    return text.ljust(width)


def _centered(text: str, width: int) -> list[str]:
    if not text:
        return []
    return [line.center(width).rstrip() for line in textwrap.wrap(text, width)]


def _field(label: str, value: str, width: int) -> str:
    prefix = f"{label:<8}: "
    return (prefix + _fit(value or "-", width - len(prefix))).rstrip()


def pass_number(gate_pass_id: str) -> str:
    """Short number printed for humans: the last 6 digits of the id."""
    digits = "".join(ch for ch in gate_pass_id if ch.isdigit())
    return digits[-6:].rjust(6, "0") if digits else gate_pass_id


def render_gate_pass_text(gate_pass, shop=None, *, width: int = DEFAULT_WIDTH) -> str:
    """
    Render a gate pass as plain text.

    `gate_pass` is a gate_pass_service.GatePass; `shop` anything with
    shop_name/address/contact_number attributes (ShopDetails) or None.
    """
    heavy = "=" * width
    light = "-" * width
    out: list[str] = [heavy]

    if shop is not None:
        out.extend(_centered(shop.shop_name, width))
        out.extend(_centered(shop.address, width))
        if shop.contact_number:
            out.extend(_centered(f"Tel: {shop.contact_number}", width))
        out.append(heavy)

    out.append("GATE PASS".center(width).rstrip())
    out.append(light)

    issued_at = gate_pass.issued_at
    out.append(_field("Pass No", pass_number(gate_pass.id), width))
    out.append(_field("Date", issued_at.strftime("%b %d, %Y") if issued_at else "", width))
    out.append(_field("Time", issued_at.strftime("%H:%M UTC") if issued_at else "", width))
    out.append(_field("Customer", gate_pass.customer, width))
    out.append(_field("Auth By", gate_pass.authorized_by, width))
    if gate_pass.dispatch_date:
        out.append(_field("Dispatch", gate_pass.dispatch_date.strftime("%b %d, %Y"), width))
    if gate_pass.reason:
        out.append(_field("Reason", gate_pass.reason, width))
    out.append(_field("Pass ID", gate_pass.id, width))
    out.append(light)

    name_width = width - SERIAL_WIDTH - QTY_WIDTH - 1 - UNIT_WIDTH
    out.append(
        ("#".ljust(SERIAL_WIDTH) + "Item".ljust(name_width) + "Qty".rjust(QTY_WIDTH) + " " + "Unit").rstrip()
    )
    out.append(light)

    for line in gate_pass.lines:
        qty = format_quantity(line.quantity)
        # Long quantities borrow columns from the item name
        line_name_width = name_width - max(len(qty) - QTY_WIDTH, 0)
        row = (
            str(line.serial).ljust(SERIAL_WIDTH)
            + _fit(line.product_name, line_name_width)
            + qty.rjust(QTY_WIDTH)
            + " "
            + _fit(line.unit_label, UNIT_WIDTH)
        )
        out.append(row.rstrip())
        if line.sku:
            out.append((" " * SERIAL_WIDTH + _fit(f"SKU: {line.sku}", width - SERIAL_WIDTH)).rstrip())

    out.append(light)
    left = f"Total Items: {gate_pass.total_items}"
    right = f"Total Qty: {format_quantity(gate_pass.total_quantity)}"
    if len(left) + 1 + len(right) <= width:
        out.append(left + " " * (width - len(left) - len(right)) + right)
    else:
        # Too long for one row: Total Qty moves to its own right-aligned row
        out.append(_fit(left, width).rstrip())
        out.append(_fit(right, width).rstrip().rjust(width))
    out.append(heavy)

    block = (width - 2) // 2
    out.append("")
    out.append(("Authorized By:".ljust(block) + "  " + "Received By:").rstrip())
    out.append("")
    out.append("_" * block + "  " + "_" * block)
    out.append((_fit(gate_pass.authorized_by, block) + "  " + _fit(gate_pass.customer, block)).rstrip())

    return "\n".join(out) + "\n"
