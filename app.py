import os
import threading
from decimal import Decimal, InvalidOperation
from functools import wraps

import click
from flask import Blueprint, Flask, current_app, jsonify, request
from flask.cli import with_appcontext
from werkzeug.exceptions import BadRequest

import atm_logic
from atm_errors import (
    VALIDATION_ERRORS,
    ATMError,
    CardBlocked,
    CardNotFound,
    StorageUnavailable,
)
from atm_session import ATMSession, MAX_PIN_ATTEMPTS, WITHDRAWAL_DENOMINATION
from atm_ui import run_terminal
from card_store import SQLiteCardStore
from init_db import DEMO_CARDS, init_db, seed_cards
from pin_policy import DEFAULT_POLICY

bp = Blueprint("atm", __name__, url_prefix="/atm")


class ATMTerminal:
    """The single session this app serves, and the lock that serializes it."""

    def __init__(self, session: ATMSession):
        self.session = session
        self.lock = threading.Lock()


def make_session(app) -> ATMSession:
    return ATMSession(
        SQLiteCardStore(app.config["DATABASE"]),
        pin_policy=app.config["PIN_POLICY"],
        max_pin_attempts=app.config["MAX_PIN_ATTEMPTS"],
        denomination=app.config["WITHDRAWAL_DENOMINATION"],
    )


def atm_operation(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        terminal = current_app.extensions["atm"]
        with terminal.lock:
            return f(terminal.session, *args, **kwargs)
    return decorated


# ---------------- REQUEST PARSING ----------------
def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("JSON object body required")
    return data


def int_field(data, name):
    value = data.get(name)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as e:
            raise BadRequest(f"'{name}' must be an integer") from e
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise BadRequest(f"'{name}' must be an integer")


def amount_field(data, name="amount"):
    value = data.get(name)
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise BadRequest(f"'{name}' must be a number")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as e:
        raise BadRequest(f"'{name}' must be a number") from e


def state_payload(session):
    return {
        "state": session.state.name,
        "card_id": session.card_id,
        "attempts_remaining": session.attempts_remaining,
    }


def change_payload(change):
    return {
        "amount": str(change.amount),
        "old_balance": str(change.old_balance),
        "balance": str(change.new_balance),
    }


# ---------------- ROUTES ----------------
@bp.route("/state", methods=["GET"])
@atm_operation
def current_state(session):
    return jsonify({"status": "success", **state_payload(session)})


@bp.route("/card", methods=["POST"])
@atm_operation
def insert_card(session):
    card_id = int_field(json_body(), "card_id")
    atm_logic.select_card(session, card_id)
    return jsonify({"status": "success", **state_payload(session)})


@bp.route("/pin", methods=["POST"])
@atm_operation
def enter_pin(session):
    pin = int_field(json_body(), "pin")
    atm_logic.verify_pin(session, pin)
    return jsonify({"status": "success", "message": "PIN Accepted", **state_payload(session)})


@bp.route("/unblock", methods=["POST"])
@atm_operation
def unblock_card(session):
    owner_name = json_body().get("owner_name")
    if not isinstance(owner_name, str):
        raise BadRequest("'owner_name' must be a string")
    atm_logic.unblock(session, owner_name)
    return jsonify({"status": "success", "message": "Card unblocked", **state_payload(session)})


@bp.route("/balance", methods=["GET"])
@atm_operation
def balance(session):
    current = atm_logic.check_balance(session)
    return jsonify({"status": "success", "message": f"Balance £{current:.2f}", "balance": str(current)})


@bp.route("/withdraw", methods=["POST"])
@atm_operation
def withdraw(session):
    change = atm_logic.withdraw(session, amount_field(json_body()))
    return jsonify({"status": "success", "message": "Take your cash", **change_payload(change)})


@bp.route("/deposit", methods=["POST"])
@atm_operation
def deposit(session):
    change = atm_logic.deposit(session, amount_field(json_body()))
    return jsonify({"status": "success", "message": "Deposit accepted", **change_payload(change)})


@bp.route("/pin/change", methods=["POST"])
@atm_operation
def change_pin(session):
    atm_logic.change_pin(session, int_field(json_body(), "new_pin"))
    return jsonify({"status": "success", "message": "PIN changed"})


@bp.route("/eject", methods=["POST"])
@atm_operation
def eject(session):
    atm_logic.eject(session)
    return jsonify({"status": "success", "message": "Card ejected", **state_payload(session)})


# ---------------- ERRORS ----------------
def status_code_for(error: ATMError) -> int:
    if isinstance(error, CardNotFound):
        return 404
    if isinstance(error, StorageUnavailable):
        return 503
    if isinstance(error, CardBlocked):
        return 403
    if isinstance(error, VALIDATION_ERRORS):
        return 400
    return 409


def handle_atm_error(error: ATMError):
    if isinstance(error, StorageUnavailable):
        current_app.logger.error("Storage failure on %s: %s", request.path, error)
    status = "blocked" if isinstance(error, CardBlocked) else "error"
    return jsonify({"status": status, **error.to_dict()}), status_code_for(error)


def handle_bad_request(error: BadRequest):
    return jsonify({"status": "error", "error": "BadRequest", "message": error.description}), 400


# ---------------- CLI ----------------
@click.command("init-db")
@with_appcontext
def init_db_command():
    """Create the card table if it does not exist."""
    init_db(current_app.config["DATABASE"])
    click.echo(f"Card table ready in {current_app.config['DATABASE']}")


@click.command("seed")
@with_appcontext
def seed_command():
    """Provision the configured seed cards."""
    added = seed_cards(init_db(current_app.config["DATABASE"]), current_app.config["SEED_CARDS"])
    click.echo(f"Added cards: {', '.join(map(str, added)) or 'none'}")


@click.command("terminal")
@with_appcontext
def terminal_command():
    """Run the interactive console ATM against the configured database."""
    run_terminal(make_session(current_app), read=input, write=click.echo)


# ---------------- APP ----------------
def create_app(test_config=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_mapping(
        DATABASE=os.path.join(app.instance_path, "atm.db"),
        PIN_POLICY=DEFAULT_POLICY,
        MAX_PIN_ATTEMPTS=MAX_PIN_ATTEMPTS,
        WITHDRAWAL_DENOMINATION=WITHDRAWAL_DENOMINATION,
        SEED_CARDS=DEMO_CARDS,
    )
    app.config.from_prefixed_env()
    if test_config is not None:
        app.config.from_mapping(test_config)

    os.makedirs(os.path.dirname(app.config["DATABASE"]) or ".", exist_ok=True)

    app.extensions["atm"] = ATMTerminal(make_session(app))
    app.register_blueprint(bp)
    app.register_error_handler(ATMError, handle_atm_error)
    app.register_error_handler(BadRequest, handle_bad_request)

    app.cli.add_command(init_db_command)
    app.cli.add_command(seed_command)
    app.cli.add_command(terminal_command)
    return app


if __name__ == "__main__":
    create_app().run(debug=True)
