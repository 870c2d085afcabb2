"""Tests for PIN verification, PIN changes and the guarded data wipe."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from shop_ledger import constants, core_logic, data_manager
from shop_ledger.access_control import (
    AccessControl,
    AccessDenied,
    PinMismatch,
    TooShort,
    WrongCurrentSecret,
)
from shop_ledger.constants import StoreKey


def test_default_pin_used_when_nothing_stored(access):
    assert access.verify(constants.DEFAULT_PIN)
    assert not access.verify("0000")


def test_stored_pin_takes_precedence():
    access = AccessControl(data_manager.MemoryStore({StoreKey.PIN: "2468"}))

    assert access.verify("2468")
    assert not access.verify(constants.DEFAULT_PIN)


def test_verify_is_exact_comparison(access):
    assert not access.verify(" 1234")
    assert not access.verify(None)


def test_change_persists_new_pin(access, memory_store):
    access.change("1234", "98765", confirmation="98765")

    assert access.verify("98765")
    assert memory_store.load(StoreKey.PIN) == "98765"
    assert AccessControl(memory_store).verify("98765")


def test_change_rejects_wrong_current_pin(access, memory_store):
    with pytest.raises(WrongCurrentSecret):
        access.change("0000", "5678")

    assert access.verify("1234")
    assert memory_store.load(StoreKey.PIN) is None


def test_change_rejects_short_pin(access, memory_store):
    with pytest.raises(TooShort):
        access.change(current="1234", new_pin="12")

    assert access.verify("1234")
    assert memory_store.load(StoreKey.PIN) is None


def test_change_rejects_mismatched_confirmation(access):
    with pytest.raises(PinMismatch):
        access.change("1234", "5678", confirmation="5679")

    assert access.verify("1234")


def test_access_errors_are_business_rule_violations():
    assert issubclass(AccessDenied, core_logic.BusinessRuleViolation)


def test_clear_all_data_requires_correct_pin(access, store):
    store.add_product("Widget", "Tools", Decimal("1"), 1)

    with pytest.raises(WrongCurrentSecret):
        access.clear_all_data(store, "9999")

    assert len(store.list_products()) == 1


def test_clear_all_data_wipes_every_collection(access, store, widget, alice_staff, memory_store):
    store.record_sale(
        core_logic.SaleCommand(widget.product_id, alice_staff.staff_id, "Alice", 1, date(2024, 1, 1))
    )

    access.clear_all_data(store, "1234")

    assert store.list_products() == []
    assert store.list_sales() == []
    assert store.list_sales_staff() == []
    assert memory_store.load(StoreKey.PRODUCTS) is None
    # the PIN itself survives a wipe
    assert access.verify("1234")
