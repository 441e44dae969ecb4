"""Durable storage for card records.

The state machine only ever talks to a ``CardStore``. ``SQLiteCardStore`` is
the real backend; ``InMemoryCardStore`` keeps the same contract for tests and
throwaway terminals.
"""
import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import closing
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Dict, Optional

from atm_errors import CardNotFound, StorageUnavailable

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# sqlite INTEGER is a signed 64-bit value
SQLITE_MIN_INT = -(2 ** 63)
SQLITE_MAX_INT = 2 ** 63 - 1
MAX_BALANCE = Decimal("999999999999.99")


@dataclass(frozen=True)
class Card:
    id: int
    pin: int
    balance: Decimal
    blocked: bool
    owner_name: str

    def __repr__(self) -> str:
        return f"<Card {self.id} - {self.owner_name}>"


def to_cents(amount: Decimal) -> int:
    return int(Decimal(amount).quantize(CENTS) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENTS)


class CardStore(ABC):
    """Load cards and persist single-field updates.

    Every ``save_*`` call is durable once it returns. A failed save raises
    and leaves the stored card as it was.
    """

    @abstractmethod
    def initialize(self) -> None:
        pass

    @abstractmethod
    def load(self, card_id: int) -> Optional[Card]:
        pass

    @abstractmethod
    def add_card(self, card: Card) -> None:
        pass

    @abstractmethod
    def save_balance(self, card_id: int, new_balance: Decimal) -> None:
        pass

    @abstractmethod
    def save_pin(self, card_id: int, new_pin: int) -> None:
        pass

    @abstractmethod
    def save_blocked(self, card_id: int, blocked: bool) -> None:
        pass


def _check_new_card(card: Card):
    if not SQLITE_MIN_INT <= card.id <= SQLITE_MAX_INT:
        raise ValueError(f"Card id {card.id} is out of range")
    if card.balance < 0:
        raise ValueError(f"Card {card.id} cannot start with a negative balance")
    if card.balance > MAX_BALANCE:
        raise ValueError(f"Card {card.id} cannot start above {MAX_BALANCE}")


def _check_balance(card_id, balance):
    if not 0 <= balance <= MAX_BALANCE:
        raise StorageUnavailable(f"Card {card_id} rejected balance update: {balance} is out of range")


# ---------------- SQLITE ----------------
SCHEMA = """
    CREATE TABLE IF NOT EXISTS card (
        id INTEGER PRIMARY KEY,
        pin INTEGER NOT NULL,
        balance_cents INTEGER NOT NULL CHECK (balance_cents >= 0),
        blocked INTEGER NOT NULL DEFAULT 0,
        owner_name TEXT NOT NULL
    )
"""


class SQLiteCardStore(CardStore):
    def __init__(self, db_path: str):
        self.db_path = db_path
        self._initialized = False

    def get_db(self):
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            logger.exception("Cannot open card database %s", self.db_path)
            raise StorageUnavailable(f"Cannot open card database: {e}") from e
        conn.row_factory = sqlite3.Row
        return conn

    def _execute(self, sql, params=()):
        """Run one statement in its own transaction; return (rows, rowcount)."""
        with closing(self.get_db()) as conn:
            try:
                with conn:
                    if not self._initialized:
                        conn.execute(SCHEMA)
                    cursor = conn.execute(sql, params)
                    # fetch before the connection closes
                    rows = cursor.fetchall()
                    count = cursor.rowcount
            except sqlite3.IntegrityError:
                raise
            except OverflowError as e:
                logger.error("Value too large for the card database: %s", e)
                raise StorageUnavailable(f"Value too large for the card database: {e}") from e
            except sqlite3.Error as e:
                logger.exception("Card database error")
                raise StorageUnavailable(f"Card database error: {e}") from e
        self._initialized = True
        return rows, count

    def initialize(self):
        self._execute(SCHEMA)
        logger.info("Card table ready in %s", self.db_path)

    def load(self, card_id):
        if not SQLITE_MIN_INT <= card_id <= SQLITE_MAX_INT:
            return None
        rows, _ = self._execute("""
            SELECT id, pin, balance_cents, blocked, owner_name
            FROM card
            WHERE id = ?
        """, (card_id,))
        if not rows:
            return None
        row = rows[0]
        return Card(
            id=row["id"],
            pin=row["pin"],
            balance=from_cents(row["balance_cents"]),
            blocked=bool(row["blocked"]),
            owner_name=row["owner_name"],
        )

    def add_card(self, card):
        _check_new_card(card)
        try:
            self._execute("""
                INSERT INTO card (id, pin, balance_cents, blocked, owner_name)
                VALUES (?, ?, ?, ?, ?)
            """, (card.id, card.pin, to_cents(card.balance), int(card.blocked), card.owner_name))
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Card {card.id} already exists") from e

    def _update(self, card_id, column, value):
        if not SQLITE_MIN_INT <= card_id <= SQLITE_MAX_INT:
            raise CardNotFound(card_id)
        try:
            _, count = self._execute(
                f"UPDATE card SET {column} = ? WHERE id = ?", (value, card_id)
            )
        except sqlite3.IntegrityError as e:
            raise StorageUnavailable(f"Card {card_id} rejected {column} update: {e}") from e
        if count != 1:
            raise CardNotFound(card_id)

    def save_balance(self, card_id, new_balance):
        _check_balance(card_id, new_balance)
        self._update(card_id, "balance_cents", to_cents(new_balance))

    def save_pin(self, card_id, new_pin):
        self._update(card_id, "pin", new_pin)

    def save_blocked(self, card_id, blocked):
        self._update(card_id, "blocked", int(blocked))


# ---------------- IN MEMORY ----------------
class InMemoryCardStore(CardStore):
    def __init__(self, cards=()):
        self._cards: Dict[int, Card] = {}
        for card in cards:
            self.add_card(card)

    def initialize(self):
        pass

    def load(self, card_id):
        # Card is frozen, so handing out the stored instance is safe
        return self._cards.get(card_id)

    def add_card(self, card):
        _check_new_card(card)
        if card.id in self._cards:
            raise ValueError(f"Card {card.id} already exists")
        self._cards[card.id] = replace(card, balance=Decimal(card.balance).quantize(CENTS))

    def _update(self, card_id, **changes):
        if card_id not in self._cards:
            raise CardNotFound(card_id)
        self._cards[card_id] = replace(self._cards[card_id], **changes)

    def save_balance(self, card_id, new_balance):
        _check_balance(card_id, new_balance)
        self._update(card_id, balance=Decimal(new_balance).quantize(CENTS))

    def save_pin(self, card_id, new_pin):
        self._update(card_id, pin=new_pin)

    def save_blocked(self, card_id, blocked):
        self._update(card_id, blocked=bool(blocked))
