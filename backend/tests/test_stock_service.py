from decimal import Decimal

import pytest

from stockflow.errors import InsufficientStock, InvalidQuantity, ProductNotFound
from stockflow.models import Product
from stockflow.services import products_service
from stockflow.services.stock_service import decrement, derive_status, increment
from stockflow.services.unit_conversion import stock_in_pieces


def _reload(db_session, product_id):
    db_session.expire_all()
    return db_session.get(Product, product_id)


def test_decrement_main_unit(db_session, account, product_factory):
    p = product_factory()
    change = decrement(account_id=account.id, product_id=p.id, quantity_to_remove=5, unit_mode="main")

    assert change.new_quantity == Decimal("5")
    stored = _reload(db_session, p.id)
    assert stored.stock_quantity == Decimal("5")
    assert stored.status == "In Stock"


def test_decrement_all_pieces_marks_out_of_stock(db_session, account, product_factory):
    p = product_factory()
    decrement(account_id=account.id, product_id=p.id, quantity_to_remove=120, unit_mode="pieces")

    stored = _reload(db_session, p.id)
    assert stored.stock_quantity == 0
    assert stored.status == "Out of Stock"


def test_decrement_beyond_stock_leaves_product_untouched(db_session, account, product_factory):
    p = product_factory()
    version_before = p.version_id

    with pytest.raises(InsufficientStock) as exc_info:
        decrement(account_id=account.id, product_id=p.id, quantity_to_remove=125, unit_mode="pieces")

    assert exc_info.value.available == Decimal("120")
    assert exc_info.value.unit_label == "pcs"
    assert "only 120 pcs available" in exc_info.value.message
    stored = _reload(db_session, p.id)
    assert stored.stock_quantity == Decimal("10")
    assert stored.version_id == version_before


def test_insufficient_main_unit_message_uses_unit_abbreviation(account, product_factory):
    p = product_factory(name="Nails")
    with pytest.raises(InsufficientStock) as exc_info:
        decrement(account_id=account.id, product_id=p.id, quantity_to_remove=11, unit_mode="main")
    assert exc_info.value.message == "Insufficient stock for Nails: only 10 box available"


def test_piece_decrement_preserves_piece_total(db_session, account, product_factory):
    p = product_factory()
    before = stock_in_pieces(p.stock_quantity, 12)
    decrement(account_id=account.id, product_id=p.id, quantity_to_remove=5, unit_mode="pieces")

    stored = _reload(db_session, p.id)
    assert stock_in_pieces(stored.stock_quantity, 12) == before - 5


def test_increment_adds_and_restores_status(db_session, account, product_factory):
    p = product_factory(stock_quantity=Decimal("0"))
    assert p.status == "Out of Stock"

    increment(account_id=account.id, product_id=p.id, quantity_to_add=Decimal("2.5"))

    stored = _reload(db_session, p.id)
    assert stored.stock_quantity == Decimal("2.5")
    assert stored.status == "In Stock"


@pytest.mark.parametrize("quantity", [0, -3, "abc"])
def test_invalid_quantities_rejected(account, product_factory, quantity):
    p = product_factory()
    with pytest.raises(InvalidQuantity):
        increment(account_id=account.id, product_id=p.id, quantity_to_add=quantity)
    with pytest.raises(InvalidQuantity):
        decrement(account_id=account.id, product_id=p.id, quantity_to_remove=quantity, unit_mode="main")


@pytest.mark.parametrize("quantity", ["1e20", "1000000001", "0.0000000001"])
def test_out_of_range_quantities_rejected_before_any_write(db_session, account, product_factory, quantity):
    p = product_factory()
    with pytest.raises(InvalidQuantity):
        decrement(account_id=account.id, product_id=p.id, quantity_to_remove=Decimal(quantity), unit_mode="main")
    with pytest.raises(InvalidQuantity):
        increment(account_id=account.id, product_id=p.id, quantity_to_add=Decimal(quantity))

    assert _reload(db_session, p.id).stock_quantity == Decimal("10")


def test_trailing_zeros_within_precision_are_accepted(db_session, account, product_factory):
    p = product_factory()
    decrement(account_id=account.id, product_id=p.id, quantity_to_remove=Decimal("1.0000000000"), unit_mode="main")
    assert _reload(db_session, p.id).stock_quantity == Decimal("9")


def test_missing_or_foreign_product_not_found(account, other_account, product_factory):
    p = product_factory()
    with pytest.raises(ProductNotFound):
        increment(account_id=account.id, product_id=9999, quantity_to_add=1)
    with pytest.raises(ProductNotFound):
        decrement(account_id=other_account.id, product_id=p.id, quantity_to_remove=1, unit_mode="main")


def test_deleted_product_cannot_move_stock(account, product_factory):
    p = product_factory()
    products_service.delete_product(account_id=account.id, product_id=p.id)
    with pytest.raises(ProductNotFound):
        increment(account_id=account.id, product_id=p.id, quantity_to_add=1)


def test_low_stock_threshold_from_product(db_session, account, product_factory):
    p = product_factory(low_stock_threshold=Decimal("3"))
    decrement(account_id=account.id, product_id=p.id, quantity_to_remove=7, unit_mode="main")
    assert _reload(db_session, p.id).status == "Low Stock"

    increment(account_id=account.id, product_id=p.id, quantity_to_add=5)
    assert _reload(db_session, p.id).status == "In Stock"


def test_low_stock_threshold_from_config(app, db_session, account, product_factory):
    app.config["LOW_STOCK_THRESHOLD"] = 5
    p = product_factory(stock_quantity=Decimal("4"))
    assert p.status == "Low Stock"


def test_derive_status_boundaries():
    assert derive_status(Decimal("0")) == "Out of Stock"
    assert derive_status(Decimal("0.001")) == "In Stock"
    assert derive_status(Decimal("2"), Decimal("2")) == "Low Stock"
    assert derive_status(Decimal("2.01"), Decimal("2")) == "In Stock"


def test_stock_never_negative_after_mixed_operations(db_session, account, product_factory):
    p = product_factory(stock_quantity=Decimal("1"), pieces_per_unit=3)
    decrement(account_id=account.id, product_id=p.id, quantity_to_remove=2, unit_mode="pieces")
    decrement(account_id=account.id, product_id=p.id, quantity_to_remove=1, unit_mode="pieces")
    with pytest.raises(InsufficientStock):
        decrement(account_id=account.id, product_id=p.id, quantity_to_remove=1, unit_mode="pieces")

    stored = _reload(db_session, p.id)
    assert stored.stock_quantity >= 0
    assert stored.status == "Out of Stock"
