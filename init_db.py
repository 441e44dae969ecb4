import logging
import os
import sys
from decimal import Decimal

from card_store import Card, SQLiteCardStore

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DB_NAME = os.path.join(BASE_DIR, "atm.db")

logger = logging.getLogger(__name__)

DEMO_CARDS = [
    {"id": 1, "pin": 1234, "balance": "100.00", "owner_name": "Test User"},
    {"id": 2, "pin": 4821, "balance": "250.00", "owner_name": "Jane Doe"},
]


def card_from_dict(data) -> Card:
    return Card(
        id=int(data["id"]),
        pin=int(data["pin"]),
        balance=Decimal(str(data.get("balance", "0"))),
        blocked=bool(data.get("blocked", False)),
        owner_name=data["owner_name"],
    )


def init_db(db_path=DB_NAME) -> SQLiteCardStore:
    store = SQLiteCardStore(db_path)
    store.initialize()
    return store


def seed_cards(store, cards=DEMO_CARDS):
    """Provision cards that are not in the store yet. Returns the ids added."""
    added = []
    for data in cards:
        card = card_from_dict(data)
        if store.load(card.id) is not None:
            continue
        store.add_card(card)
        added.append(card.id)
    logger.info("Seeded %d card(s)", len(added))
    return added


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    path = sys.argv[1] if len(sys.argv) > 1 else DB_NAME
    added = seed_cards(init_db(path))
    print(f"Card table ready in {path}. Added cards: {added or 'none'}")
