from typing import Optional

from atm_errors import CardBlocked, InvalidState, NotAuthenticated
from atm_states import ATMState
from card_store import Card, CardStore
from pin_policy import DEFAULT_POLICY, PIN_RANGES

MAX_PIN_ATTEMPTS = 3
WITHDRAWAL_DENOMINATION = 5


class ATMSession:
    """One terminal's view of the card currently inserted."""

    def __init__(self, store: CardStore, pin_policy: str = DEFAULT_POLICY,
                 max_pin_attempts: int = MAX_PIN_ATTEMPTS,
                 denomination: int = WITHDRAWAL_DENOMINATION):
        if pin_policy not in PIN_RANGES:
            raise ValueError(f"Unknown PIN policy: {pin_policy!r}")
        self.store = store
        self.pin_policy = pin_policy
        self.max_pin_attempts = max_pin_attempts
        self.denomination = denomination
        self.state = ATMState.IDLE
        self.card: Optional[Card] = None
        self.attempts_remaining = 0

    @property
    def card_id(self) -> Optional[int]:
        return self.card.id if self.card else None

    def start_episode(self, card: Card):
        self.card = card
        self.attempts_remaining = self.max_pin_attempts
        self.state = ATMState.BLOCKED if card.blocked else ATMState.AUTHENTICATING

    def require_authenticated(self):
        if self.state == ATMState.BLOCKED:
            raise CardBlocked()
        if self.state != ATMState.AUTHENTICATED:
            raise NotAuthenticated()

    def require_state(self, required_state: ATMState):
        if self.state == required_state:
            return
        if self.state == ATMState.IDLE:
            raise NotAuthenticated("No card inserted")
        if self.state == ATMState.AUTHENTICATING:
            raise NotAuthenticated()
        if self.state == ATMState.BLOCKED:
            raise CardBlocked()
        raise InvalidState(
            f"Action not allowed. Required: {required_state.name}, Current: {self.state.name}"
        )

    def reset(self):
        self.card = None
        self.attempts_remaining = 0
        self.state = ATMState.IDLE

    def __repr__(self):
        return f"<ATMSession card={self.card_id} state={self.state.name}>"
