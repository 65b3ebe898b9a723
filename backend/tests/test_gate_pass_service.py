"""
Gate pass issuance: validation, re-authentication, all-or-nothing commit
and reconstruction from the outgoing log.
"""

from datetime import date
from decimal import Decimal

import pytest

from stockflow.errors import (
    GatePassNotFound,
    InvalidCredential,
    ReauthenticationError,
    ValidationFailed,
)
from stockflow.models import OutgoingStockLog, Product
from stockflow.services import gate_pass_service, profile_service, session_service
from stockflow.services.gate_pass_service import (
    CartLine,
    GatePassIssuance,
    GatePassRequest,
    IssuanceFailed,
    IssuanceState,
    issue_gate_pass,
)

from conftest import TEST_PASSWORD


def _request(*lines, customer="Acme Traders", authorized_by="Alice", dispatch=date(2024, 3, 1), reason=None):
    return GatePassRequest(
        customer=customer,
        authorized_by=authorized_by,
        dispatch_date=dispatch,
        items=[CartLine(product_id=pid, quantity=Decimal(q), unit_mode=mode) for pid, q, mode in lines],
        reason=reason,
    )


def _stock(db_session, product_id):
    db_session.expire_all()
    return db_session.get(Product, product_id).stock_quantity


def test_two_line_cart_shares_one_pass_id(db_session, session_context, product_factory):
    a = product_factory(name="Cement")
    b = product_factory(name="Tiles", pieces_per_unit=4, stock_quantity=Decimal("5"))

    issued = issue_gate_pass(
        session_context,
        _request((a.id, "3", "main"), (b.id, "6", "pieces")),
        TEST_PASSWORD,
    )

    entries = db_session.query(OutgoingStockLog).all()
    assert len(entries) == 2
    assert {e.gate_pass_id for e in entries} == {issued.gate_pass.id}
    assert issued.gate_pass.id.startswith("GP-")
    assert issued.scan_payload == issued.gate_pass.id

    assert _stock(db_session, a.id) == Decimal("7")
    assert _stock(db_session, b.id) == Decimal("3.5")

    assert issued.gate_pass.total_items == 2
    assert issued.gate_pass.total_quantity == Decimal("9")
    assert [line.unit_label for line in issued.gate_pass.lines] == ["box", "pcs"]


def test_entries_carry_pass_metadata(db_session, session_context, product_factory):
    p = product_factory()
    issue_gate_pass(session_context, _request((p.id, "1", "main")), TEST_PASSWORD)

    entry = db_session.query(OutgoingStockLog).one()
    assert entry.destination == "Acme Traders"
    assert entry.issued_to == "Alice"
    assert entry.reason == "Dispatched on Mar 01, 2024"
    assert entry.dispatch_date == date(2024, 3, 1)
    assert entry.unit_mode == "main"
    assert entry.stock_delta == Decimal("1")


def test_wrong_password_changes_nothing(db_session, session_context, product_factory):
    p = product_factory()
    version_before = p.version_id
    issuance = GatePassIssuance(session_context, _request((p.id, "5", "main")))

    with pytest.raises(InvalidCredential) as exc_info:
        issuance.submit("not-the-password")

    assert exc_info.value.message == "Wrong password"
    assert issuance.state == IssuanceState.IDLE
    assert db_session.query(OutgoingStockLog).count() == 0
    db_session.expire_all()
    stored = db_session.get(Product, p.id)
    assert stored.stock_quantity == Decimal("10")
    assert stored.version_id == version_before


def test_revoked_session_is_other_auth_error(db_session, session_context, session_token, product_factory):
    p = product_factory()
    _, token = session_token
    session_service.revoke_session(token)

    with pytest.raises(ReauthenticationError):
        issue_gate_pass(session_context, _request((p.id, "1", "main")), TEST_PASSWORD)
    assert _stock(db_session, p.id) == Decimal("10")


@pytest.mark.parametrize("overrides, field", [
    ({"customer": ""}, "customer"),
    ({"authorized_by": ""}, "authorized_by"),
    ({"dispatch": None}, "dispatch_date"),
])
def test_incomplete_form_rejected_before_reauth(session_context, product_factory, overrides, field):
    p = product_factory()
    issuance = GatePassIssuance(session_context, _request((p.id, "1", "main"), **overrides))

    # Wrong password would raise InvalidCredential if re-auth were reached
    with pytest.raises(ValidationFailed) as exc_info:
        issuance.submit("not-the-password")

    assert exc_info.value.field == field
    assert issuance.history == [IssuanceState.IDLE, IssuanceState.VALIDATING_FORM, IssuanceState.IDLE]


def test_empty_cart_rejected(session_context):
    with pytest.raises(ValidationFailed) as exc_info:
        issue_gate_pass(session_context, _request(), TEST_PASSWORD)
    assert exc_info.value.field == "items"


@pytest.mark.parametrize("quantity", ["1e20", "0.0000000001"])
def test_out_of_range_quantity_rejected_as_form_error(db_session, session_context, product_factory, quantity):
    p = product_factory()
    with pytest.raises(ValidationFailed) as exc_info:
        issue_gate_pass(session_context, _request((p.id, quantity, "main")), TEST_PASSWORD)

    assert exc_info.value.field == "items[1].quantity"
    assert _stock(db_session, p.id) == Decimal("10")
    assert db_session.query(OutgoingStockLog).count() == 0


def test_one_bad_line_rolls_back_every_line(db_session, session_context, product_factory):
    a = product_factory()
    b = product_factory()
    issuance = GatePassIssuance(
        session_context,
        _request((a.id, "4", "main"), (b.id, "121", "pieces"), (9999, "1", "main")),
    )

    with pytest.raises(IssuanceFailed) as exc_info:
        issuance.submit(TEST_PASSWORD)

    failures = exc_info.value.failures
    assert [f.serial for f in failures] == [2, 3]
    assert failures[0].to_dict()["error"] == "InsufficientStock"
    assert failures[1].to_dict()["error"] == "ProductNotFound"
    assert issuance.state == IssuanceState.PARTIALLY_FAILED

    assert db_session.query(OutgoingStockLog).count() == 0
    assert _stock(db_session, a.id) == Decimal("10")
    assert _stock(db_session, b.id) == Decimal("10")


def test_same_product_on_two_lines_is_checked_cumulatively(db_session, session_context, product_factory):
    p = product_factory()
    with pytest.raises(IssuanceFailed):
        issue_gate_pass(
            session_context,
            _request((p.id, "6", "main"), (p.id, "60", "pieces")),
            TEST_PASSWORD,
        )
    assert _stock(db_session, p.id) == Decimal("10")


def test_happy_path_state_sequence(session_context, product_factory):
    p = product_factory()
    issuance = GatePassIssuance(session_context, _request((p.id, "1", "main")))
    issuance.submit(TEST_PASSWORD)

    assert issuance.history == [
        IssuanceState.IDLE,
        IssuanceState.VALIDATING_FORM,
        IssuanceState.AWAITING_REAUTH,
        IssuanceState.AUTHENTICATED,
        IssuanceState.MUTATING,
        IssuanceState.AUDITING,
        IssuanceState.RENDERED,
    ]


def test_pass_ids_unique_within_account(session_context, product_factory):
    p = product_factory(stock_quantity=Decimal("100"))
    ids = {
        issue_gate_pass(session_context, _request((p.id, "1", "main")), TEST_PASSWORD).gate_pass.id
        for _ in range(5)
    }
    assert len(ids) == 5


def test_lookup_reconstructs_pass_and_renders_identically(session_context, product_factory, account):
    profile_service.save_profile(account.id, shop_details={"shop_name": "Corner Hardware"})
    p = product_factory(name="Paint", sku="PNT-1")
    issued = issue_gate_pass(session_context, _request((p.id, "2", "main")), TEST_PASSWORD)

    found = gate_pass_service.get_gate_pass(account.id, issued.gate_pass.id)
    assert found.customer == "Acme Traders"
    assert found.authorized_by == "Alice"
    assert [(line.product_name, line.quantity) for line in found.lines] == [("Paint", Decimal("2"))]

    first = gate_pass_service.render_gate_pass(account.id, issued.gate_pass.id)
    second = gate_pass_service.render_gate_pass(account.id, issued.gate_pass.id)
    assert first == second == issued.document_text
    assert "Corner Hardware" in first


def test_product_rename_does_not_change_reprint(session_context, product_factory, account):
    p = product_factory(name="Old Name")
    issued = issue_gate_pass(session_context, _request((p.id, "1", "main")), TEST_PASSWORD)

    from stockflow.services import products_service
    products_service.update_product(account_id=account.id, product_id=p.id, patch={"name": "New Name"})

    text = gate_pass_service.render_gate_pass(account.id, issued.gate_pass.id)
    assert "Old Name" in text
    assert "New Name" not in text


def test_unknown_or_foreign_pass_not_found(session_context, product_factory, other_account):
    p = product_factory()
    issued = issue_gate_pass(session_context, _request((p.id, "1", "main")), TEST_PASSWORD)

    with pytest.raises(GatePassNotFound):
        gate_pass_service.get_gate_pass(other_account.id, issued.gate_pass.id)
    with pytest.raises(GatePassNotFound):
        gate_pass_service.get_gate_pass(session_context.account_id, "GP-0")


def test_list_gate_passes_groups_lines(session_context, product_factory):
    a = product_factory()
    b = product_factory()
    issued = issue_gate_pass(session_context, _request((a.id, "1", "main"), (b.id, "2", "main")), TEST_PASSWORD)

    rows = gate_pass_service.list_gate_passes(session_context.account_id)
    assert len(rows) == 1
    assert rows[0]["id"] == issued.gate_pass.id
    assert rows[0]["total_items"] == 2
    assert rows[0]["total_quantity"] == "3"


def test_request_from_payload_parses_items():
    req = GatePassRequest.from_payload({
        "customer": " Acme ",
        "authorized_by": "Alice",
        "dispatch_date": "2024-03-01",
        "items": [{"product_id": 1, "quantity": "2.5", "unit_mode": "pcs"}],
    })
    assert req.customer == "Acme"
    assert req.dispatch_date == date(2024, 3, 1)
    assert req.items == [CartLine(product_id=1, quantity=Decimal("2.5"), unit_mode="pieces")]


def test_request_from_payload_rejects_bad_items():
    with pytest.raises(ValidationFailed):
        GatePassRequest.from_payload({"items": [{"product_id": "x", "quantity": 1}]})
    with pytest.raises(ValidationFailed):
        GatePassRequest.from_payload({"items": [{"product_id": 1, "quantity": "lots"}]})
    with pytest.raises(ValidationFailed):
        GatePassRequest.from_payload({"dispatch_date": "yesterday"})
