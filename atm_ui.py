import logging
import sys
from decimal import Decimal, InvalidOperation

from atm_errors import ATMError, CardBlocked, CardNotFound, IncorrectPin
from atm_logic import (
    change_pin,
    check_balance,
    deposit,
    eject,
    select_card,
    unblock,
    verify_pin,
    withdraw,
)
from atm_session import ATMSession
from atm_states import ATMState, TransactionType
from card_store import SQLiteCardStore
from init_db import DB_NAME, init_db

MENU = (
    "\n1. Check Balance\n"
    "2. Withdraw Money\n"
    "3. Deposit Money\n"
    "4. Change PIN\n"
    "5. Eject Card\n> "
)

MENU_CHOICES = {
    1: TransactionType.CHECK_BALANCE,
    2: TransactionType.WITHDRAW,
    3: TransactionType.DEPOSIT,
    4: TransactionType.CHANGE_PIN,
    5: TransactionType.EJECT,
}


def format_receipt(card, change) -> str:
    return "\n".join([
        "",
        "--- Transaction Receipt ---",
        f"Card ID: {card.id}",
        f"Owner: {card.owner_name}",
        f"Transaction: {change.transaction.name.title()}",
        f"Amount: £{change.amount:.2f}",
        f"Old Balance: £{change.old_balance:.2f}",
        f"New Balance: £{change.new_balance:.2f}",
        "---------------------------",
    ])


# ---------------- INPUT ----------------
def prompt_int(read, write, prompt):
    while True:
        raw = read(prompt).strip()
        try:
            return int(raw)
        except ValueError:
            write("Invalid transaction.")


def prompt_amount(read, write, prompt):
    while True:
        raw = read(prompt).strip()
        try:
            return Decimal(raw)
        except InvalidOperation:
            write("Invalid transaction.")


def wants_receipt(read) -> bool:
    response = read("Do you want to print a receipt? (y/n):\n> ").strip().lower()
    return response == "y"


# ---------------- FLOW ----------------
def authenticate(session: ATMSession, read, write) -> bool:
    while session.state == ATMState.AUTHENTICATING:
        pin = prompt_int(read, write, "Enter PIN:\n> ")
        try:
            verify_pin(session, pin)
        except IncorrectPin as e:
            write(e.message)
        except CardBlocked as e:
            write(e.message)
            return False
    return session.state == ATMState.AUTHENTICATED


def contact_bank(session: ATMSession, read, write):
    write("Card is blocked. Contact the bank.")
    name = read("Enter your full name to unblock the card: ").strip()
    try:
        unblock(session, name)
    except CardBlocked as e:
        write(e.message)
        return
    write("Card unblocked successfully.")


def handle_transactions(session: ATMSession, read, write):
    while True:
        transaction = MENU_CHOICES.get(prompt_int(read, write, MENU))
        if transaction is None:
            write("Invalid option.")
            continue

        if transaction == TransactionType.EJECT:
            eject(session)
            write("Card ejected. Thank you!")
            return

        try:
            if transaction == TransactionType.CHECK_BALANCE:
                write(f"Your balance: £{check_balance(session):.2f}")

            elif transaction == TransactionType.WITHDRAW:
                amount = prompt_amount(
                    read, write, f"Enter amount to withdraw (multiple of {session.denomination}):\n> "
                )
                change = withdraw(session, amount)
                write(f"Withdrawal successful. New balance: £{change.new_balance:.2f}")
                if wants_receipt(read):
                    write(format_receipt(session.card, change))

            elif transaction == TransactionType.DEPOSIT:
                amount = prompt_amount(read, write, "Enter amount to deposit:\n> ")
                change = deposit(session, amount)
                write(f"Deposit successful. New balance: £{change.new_balance:.2f}")
                if wants_receipt(read):
                    write(format_receipt(session.card, change))

            elif transaction == TransactionType.CHANGE_PIN:
                change_pin(session, prompt_int(read, write, "Enter new PIN:\n> "))
                write("PIN changed successfully.")

        except ATMError as e:
            write(e.message)
            # card blocked or removed from storage mid-session
            if session.state != ATMState.AUTHENTICATED:
                return


def run_terminal(session: ATMSession, read=input, write=print):
    write("=== Welcome to ATMGuard ===")
    try:
        while True:
            card_id = prompt_int(read, write, "\nEnter Card ID (0 to Exit):\n> ")
            if card_id == 0:
                break

            try:
                state = select_card(session, card_id)
            except CardNotFound as e:
                write(e.message)
                continue

            if state == ATMState.BLOCKED:
                contact_bank(session, read, write)
            elif authenticate(session, read, write):
                handle_transactions(session, read, write)
            eject(session)
    except EOFError:
        eject(session)
    write("Thank you for using ATMGuard. Goodbye!")


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    db_path = argv[0] if argv else DB_NAME
    logging.basicConfig(level=logging.INFO)
    init_db(db_path)
    run_terminal(ATMSession(SQLiteCardStore(db_path)))


if __name__ == "__main__":
    main()
