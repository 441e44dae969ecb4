from decimal import Decimal

import pytest

from app import create_app
from atm_logic import select_card, verify_pin
from atm_session import ATMSession
from card_store import Card, InMemoryCardStore, SQLiteCardStore


def make_cards():
    return [
        Card(id=1, pin=1234, balance=Decimal("100.00"), blocked=False, owner_name="Test User"),
        Card(id=2, pin=4821, balance=Decimal("250.00"), blocked=True, owner_name="Jane Doe"),
    ]


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "atm.db")


@pytest.fixture
def store(db_path):
    store = SQLiteCardStore(db_path)
    store.initialize()
    for card in make_cards():
        store.add_card(card)
    return store


@pytest.fixture
def memory_store():
    return InMemoryCardStore(make_cards())


@pytest.fixture
def session(store):
    return ATMSession(store)


@pytest.fixture
def authed(session):
    select_card(session, 1)
    verify_pin(session, 1234)
    return session


@pytest.fixture
def app(db_path):
    app = create_app({"TESTING": True, "DATABASE": db_path})
    store = SQLiteCardStore(db_path)
    for card in make_cards():
        store.add_card(card)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()
