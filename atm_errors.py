"""Errors raised by the card core.

Every failure a terminal can show the user is an ``ATMError``. The ``kind``
string is stable and is what terminals switch on; the extra attributes carry
whatever context is needed to render a precise message.
"""


class ATMError(Exception):
    kind = "ATMError"
    default_message = "ATM operation failed"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def context(self) -> dict:
        return {}

    def to_dict(self) -> dict:
        data = {"error": self.kind, "message": self.message}
        data.update(self.context())
        return data


# ---------------- LIFECYCLE ----------------
class CardNotFound(ATMError):
    kind = "CardNotFound"
    default_message = "Card not found"

    def __init__(self, card_id, message=None):
        self.card_id = card_id
        super().__init__(message or f"Card {card_id} not found")

    def context(self):
        return {"card_id": self.card_id}


class NotAuthenticated(ATMError):
    kind = "NotAuthenticated"
    default_message = "PIN not verified"


class CardBlocked(ATMError):
    kind = "CardBlocked"
    default_message = "Card is blocked. Contact the bank."


class UnblockRejected(CardBlocked):
    default_message = "Incorrect name. Card remains blocked."


class IncorrectPin(ATMError):
    kind = "IncorrectPin"

    def __init__(self, remaining_attempts):
        self.remaining_attempts = remaining_attempts
        super().__init__(f"Incorrect PIN. Attempts left: {remaining_attempts}")

    def context(self):
        return {"remaining_attempts": self.remaining_attempts}


class InvalidState(ATMError):
    kind = "InvalidState"
    default_message = "Action not allowed in the current state"


# ---------------- VALIDATION ----------------
class InvalidAmount(ATMError):
    kind = "InvalidAmount"
    default_message = "Amount must be greater than zero"


class InvalidDenomination(ATMError):
    kind = "InvalidDenomination"

    def __init__(self, denomination):
        self.denomination = denomination
        super().__init__(f"Withdrawal amount must be a multiple of {denomination}")

    def context(self):
        return {"denomination": self.denomination}


class InsufficientFunds(ATMError):
    kind = "InsufficientFunds"

    def __init__(self, balance):
        self.balance = balance
        super().__init__(f"Insufficient funds. Balance: £{balance:.2f}")

    def context(self):
        return {"balance": str(self.balance)}


class InvalidPinFormat(ATMError):
    kind = "InvalidFormat"
    default_message = "PIN must be a 4-digit number"


class WeakPin(ATMError):
    kind = "WeakPin"
    default_message = "PIN is too weak. Choose a stronger PIN."


# ---------------- STORAGE ----------------
class StorageUnavailable(ATMError):
    kind = "StorageUnavailable"
    default_message = "Card storage is unavailable"


VALIDATION_ERRORS = (
    InvalidAmount,
    InvalidDenomination,
    InsufficientFunds,
    InvalidPinFormat,
    WeakPin,
    IncorrectPin,
)
