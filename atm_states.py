from enum import Enum, auto

class ATMState(Enum):
    IDLE = auto()
    AUTHENTICATING = auto()
    AUTHENTICATED = auto()
    BLOCKED = auto()


class TransactionType(Enum):
    CHECK_BALANCE = "balance"
    WITHDRAW = "withdraw"
    DEPOSIT = "deposit"
    CHANGE_PIN = "change_pin"
    EJECT = "eject"
