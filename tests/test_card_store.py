import sqlite3
from decimal import Decimal

import pytest

from atm_errors import CardNotFound, StorageUnavailable
from card_store import MAX_BALANCE, Card, SQLiteCardStore, from_cents, to_cents


def test_load_returns_card(store):
    card = store.load(1)
    assert card == Card(1, 1234, Decimal("100.00"), False, "Test User")
    assert str(card.balance) == "100.00"


def test_load_missing_card_returns_none(store):
    assert store.load(42) is None


def test_initialize_is_idempotent_and_keeps_rows(store, db_path):
    store.initialize()
    SQLiteCardStore(db_path).initialize()
    assert store.load(1) is not None
    assert store.load(2).blocked


def test_table_is_created_on_first_use(db_path):
    store = SQLiteCardStore(db_path)
    assert store.load(1) is None


def test_saves_are_durable(store, db_path):
    store.save_balance(1, Decimal("70.05"))
    store.save_pin(1, 7391)
    store.save_blocked(1, True)

    reopened = SQLiteCardStore(db_path).load(1)
    assert reopened.balance == Decimal("70.05")
    assert reopened.pin == 7391
    assert reopened.blocked is True


def test_balance_is_stored_in_cents(store, db_path):
    store.save_balance(1, Decimal("0.10"))
    with sqlite3.connect(db_path) as conn:
        (cents,) = conn.execute("SELECT balance_cents FROM card WHERE id = 1").fetchone()
    assert cents == 10


def test_save_on_missing_card_raises(store):
    with pytest.raises(CardNotFound):
        store.save_balance(99, Decimal("1.00"))
    with pytest.raises(CardNotFound):
        store.save_blocked(99, True)


def test_negative_balance_is_refused_by_storage(store):
    with pytest.raises(StorageUnavailable):
        store.save_balance(1, Decimal("-5.00"))
    assert store.load(1).balance == Decimal("100.00")


def test_add_card_rejects_duplicates_and_negative_balances(store):
    with pytest.raises(ValueError):
        store.add_card(Card(1, 5555, Decimal("1.00"), False, "Someone"))
    with pytest.raises(ValueError):
        store.add_card(Card(3, 5555, Decimal("-1.00"), False, "Someone"))


def test_unreachable_database_raises_storage_unavailable(tmp_path):
    store = SQLiteCardStore(str(tmp_path / "missing" / "atm.db"))
    with pytest.raises(StorageUnavailable) as excinfo:
        store.load(1)
    assert isinstance(excinfo.value.__cause__, sqlite3.Error)


def test_cents_conversion_is_exact():
    assert to_cents(Decimal("19.99")) == 1999
    assert from_cents(1999) == Decimal("19.99")
    assert str(from_cents(500)) == "5.00"


def test_memory_store_matches_contract(memory_store):
    assert memory_store.load(42) is None
    memory_store.save_balance(1, Decimal("12.5"))
    assert memory_store.load(1).balance == Decimal("12.50")
    with pytest.raises(CardNotFound):
        memory_store.save_pin(42, 7391)
    with pytest.raises(StorageUnavailable):
        memory_store.save_balance(1, Decimal("-1"))
    assert memory_store.load(1).balance == Decimal("12.50")


@pytest.mark.parametrize("card_id", [10 ** 20, -(10 ** 20), 2 ** 63])
def test_ids_beyond_sqlite_range_are_not_found(store, memory_store, card_id):
    assert store.load(card_id) is None
    assert memory_store.load(card_id) is None
    with pytest.raises(CardNotFound):
        store.save_pin(card_id, 7391)
    with pytest.raises(CardNotFound):
        memory_store.save_pin(card_id, 7391)


def test_balance_above_maximum_is_refused_by_both_stores(store, memory_store):
    too_much = MAX_BALANCE + Decimal("0.01")
    for backend in (store, memory_store):
        with pytest.raises(StorageUnavailable):
            backend.save_balance(1, too_much)
        assert backend.load(1).balance == Decimal("100.00")
    store.save_balance(1, MAX_BALANCE)
    assert store.load(1).balance == MAX_BALANCE


def test_overflowing_value_becomes_storage_unavailable(store):
    with pytest.raises(StorageUnavailable) as excinfo:
        store.save_pin(1, 10 ** 20)
    assert isinstance(excinfo.value.__cause__, OverflowError)
    assert store.load(1).pin == 1234
