import logging
from dataclasses import replace
from decimal import Decimal
from typing import NamedTuple

from atm_errors import (
    CardBlocked,
    CardNotFound,
    IncorrectPin,
    InsufficientFunds,
    InvalidAmount,
    InvalidDenomination,
    InvalidPinFormat,
    InvalidState,
    UnblockRejected,
    WeakPin,
)
from atm_session import ATMSession
from atm_states import ATMState, TransactionType
from card_store import CENTS, MAX_BALANCE
from pin_policy import is_valid_format, is_weak

logger = logging.getLogger(__name__)


class BalanceChange(NamedTuple):
    transaction: TransactionType
    amount: Decimal
    old_balance: Decimal
    new_balance: Decimal


# ---------------- HELPERS ----------------
def to_amount(amount) -> Decimal:
    """Coerce a parsed amount to an exact, positive Decimal with at most 2 places."""
    if isinstance(amount, bool):
        raise InvalidAmount("Amount must be a number")
    if isinstance(amount, float):
        amount = Decimal(repr(amount))
    elif isinstance(amount, int):
        amount = Decimal(amount)
    elif not isinstance(amount, Decimal):
        raise InvalidAmount("Amount must be a number")

    if not amount.is_finite():
        raise InvalidAmount("Amount must be a finite number")
    if amount <= 0:
        raise InvalidAmount()
    if amount > MAX_BALANCE:
        raise InvalidAmount(f"Amount cannot exceed £{MAX_BALANCE}")
    exact = amount.quantize(CENTS)
    if exact != amount:
        raise InvalidAmount("Amount cannot have more than two decimal places")
    return exact


def refresh_card(session: ATMSession):
    """Re-read the inserted card so the session never acts on a stale copy."""
    card_id = session.card_id
    card = session.store.load(card_id)
    if card is None:
        session.reset()
        raise CardNotFound(card_id)
    session.card = card
    if card.blocked and session.state != ATMState.BLOCKED:
        session.state = ATMState.BLOCKED
        logger.warning("Card %s was blocked outside this session", card_id)
        raise CardBlocked()
    return card


def _lock_out(session: ATMSession):
    card = session.card
    session.store.save_blocked(card.id, True)
    session.card = replace(card, blocked=True)
    session.state = ATMState.BLOCKED
    logger.warning("Card %s blocked after %d wrong PIN attempts", card.id, session.max_pin_attempts)
    raise CardBlocked("Card blocked due to multiple wrong PIN attempts")


# ---------------- CARD + PIN ----------------
def select_card(session: ATMSession, card_id: int) -> ATMState:
    session.reset()
    card = session.store.load(card_id)
    if card is None:
        logger.info("Card %s not found", card_id)
        raise CardNotFound(card_id)
    session.start_episode(card)
    logger.info("Card %s inserted (%s)", card_id, session.state.name)
    return session.state


def verify_pin(session: ATMSession, pin: int) -> ATMState:
    session.require_state(ATMState.AUTHENTICATING)
    card = refresh_card(session)

    # a lockout whose save failed earlier is retried before anything else
    if session.attempts_remaining <= 0:
        _lock_out(session)

    if pin == card.pin:
        session.state = ATMState.AUTHENTICATED
        logger.info("PIN verified for card %s", card.id)
        return session.state

    session.attempts_remaining -= 1
    logger.warning("Wrong PIN for card %s (%d attempts left)", card.id, session.attempts_remaining)
    if session.attempts_remaining <= 0:
        _lock_out(session)
    raise IncorrectPin(session.attempts_remaining)


def unblock(session: ATMSession, owner_name: str) -> ATMState:
    session.require_state(ATMState.BLOCKED)
    card = refresh_card(session)

    if card.blocked:
        if owner_name != card.owner_name:
            logger.warning("Unblock rejected for card %s", card.id)
            raise UnblockRejected()
        session.store.save_blocked(card.id, False)
        card = replace(card, blocked=False)
        logger.info("Card %s unblocked", card.id)

    session.start_episode(card)
    return session.state


def eject(session: ATMSession) -> ATMState:
    if session.card is not None:
        logger.info("Card %s ejected", session.card_id)
    session.reset()
    return session.state


# ---------------- TRANSACTIONS ----------------
def check_balance(session: ATMSession) -> Decimal:
    session.require_authenticated()
    return refresh_card(session).balance


def withdraw(session: ATMSession, amount) -> BalanceChange:
    session.require_authenticated()
    card = refresh_card(session)

    amount = to_amount(amount)
    if amount % session.denomination != 0:
        raise InvalidDenomination(session.denomination)
    if amount > card.balance:
        raise InsufficientFunds(card.balance)

    new_balance = card.balance - amount
    session.store.save_balance(card.id, new_balance)
    session.card = replace(card, balance=new_balance)
    logger.info("Card %s withdrew %s", card.id, amount)
    return BalanceChange(TransactionType.WITHDRAW, amount, card.balance, new_balance)


def deposit(session: ATMSession, amount) -> BalanceChange:
    session.require_authenticated()
    card = refresh_card(session)

    amount = to_amount(amount)
    new_balance = card.balance + amount
    if new_balance > MAX_BALANCE:
        raise InvalidAmount(f"Balance cannot exceed £{MAX_BALANCE}")
    session.store.save_balance(card.id, new_balance)
    session.card = replace(card, balance=new_balance)
    logger.info("Card %s deposited %s", card.id, amount)
    return BalanceChange(TransactionType.DEPOSIT, amount, card.balance, new_balance)


def change_pin(session: ATMSession, new_pin: int) -> None:
    session.require_authenticated()
    card = refresh_card(session)

    if not is_valid_format(new_pin, session.pin_policy):
        raise InvalidPinFormat()
    if is_weak(new_pin):
        raise WeakPin()

    session.store.save_pin(card.id, new_pin)
    session.card = replace(card, pin=new_pin)
    logger.info("PIN changed for card %s", card.id)


def perform_transaction(session: ATMSession, transaction: TransactionType,
                        amount=None, new_pin=None):
    """Dispatch a menu choice to the matching operation."""
    if transaction == TransactionType.CHECK_BALANCE:
        return check_balance(session)
    if transaction == TransactionType.WITHDRAW:
        return withdraw(session, amount)
    if transaction == TransactionType.DEPOSIT:
        return deposit(session, amount)
    if transaction == TransactionType.CHANGE_PIN:
        return change_pin(session, new_pin)
    if transaction == TransactionType.EJECT:
        return eject(session)
    raise InvalidState(f"Invalid transaction: {transaction!r}")
