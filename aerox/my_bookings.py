import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from . import lifecycle, state
from .draft import ModificationDraft
from .errors import (
    AlreadyProcessing,
    BackendRejected,
    BackendUnavailable,
    StateGateError,
    SubmissionError,
    ValidationError,
)
from .fares import FareLookup
from .identity import IdentityContext
from .notifications import notify_booking_modified
from .store import BookingStore
from .submission import BookingBoard, submit_modification

logger = logging.getLogger(__name__)

bookings_bp = Blueprint("bookings", __name__, url_prefix="/bookings")

store = BookingStore()
fare_lookup = FareLookup()


def _board():
    identity = IdentityContext.from_user(current_user)
    processing = current_app.extensions["aerox_processing"]
    return BookingBoard.load(store, identity, processing=processing), identity


def _draft_json(draft):
    return jsonify({"ok": True, "draft": draft.to_dict()})


def _no_draft():
    return jsonify({"ok": False, "error": "No modification in progress."}), 404


def _unavailable(exc):
    return jsonify({"ok": False, "error": exc.message}), 503


# user dashboard: every booking with its gated actions
@bookings_bp.route("/")
@login_required
def my_bookings():
    try:
        board, _ = _board()
    except BackendUnavailable as exc:
        return _unavailable(exc)

    bookings = []
    for booking in board.bookings:
        history = board.requests_for(booking["id"])
        bookings.append(dict(
            booking,
            badge=lifecycle.booking_badge(booking, history),
            actions=lifecycle.booking_actions(booking, history),
            processing=board.is_processing(booking["id"]),
            requests=history,
        ))
    return jsonify({"ok": True, "bookings": bookings})


# open a draft for a booking whose modification request was approved
@bookings_bp.route("/<int:booking_id>/draft", methods=["POST"])
@login_required
def open_draft(booking_id):
    try:
        board, _ = _board()
    except BackendUnavailable as exc:
        return _unavailable(exc)

    booking = board.find(booking_id)
    if not booking:
        return jsonify({"ok": False, "error": "Booking not found"}), 404
    history = board.requests_for(booking_id)
    if not lifecycle.can_act_on_approved_modification(booking, history):
        label = lifecycle.booking_actions(booking, history)["modify"]["label"]
        return jsonify({"ok": False, "error": "This booking cannot be modified right now.", "label": label}), 403

    approved = lifecycle.latest_request(booking, history, lifecycle.MODIFICATION)
    draft = ModificationDraft.seed(booking, approved, fare_lookup=fare_lookup)
    state.save_draft(draft)
    return _draft_json(draft), 201


@bookings_bp.route("/draft")
@login_required
def get_draft():
    draft = state.get_draft(fare_lookup)
    if not draft:
        return _no_draft()
    return _draft_json(draft)


@bookings_bp.route("/draft/toggle", methods=["POST"])
@login_required
def toggle_section():
    draft = state.get_draft(fare_lookup)
    if not draft:
        return _no_draft()
    data = request.get_json(silent=True) or {}
    try:
        draft.toggle_section(data.get("section"), bool(data.get("enabled")))
    except ValueError as exc:
        return jsonify({"ok": False, "error": str(exc)}), 400
    except StateGateError as exc:
        return jsonify({"ok": False, "error": exc.message}), 403
    state.save_draft(draft)
    return _draft_json(draft)


@bookings_bp.route("/draft/field", methods=["POST"])
@login_required
def set_field():
    draft = state.get_draft(fare_lookup)
    if not draft:
        return _no_draft()
    data = request.get_json(silent=True) or {}
    if "path" not in data:
        return jsonify({"ok": False, "error": "Missing field path"}), 400
    try:
        draft.set_field(data["path"], data.get("value"))
    except ValueError as exc:
        return jsonify({"ok": False, "error": str(exc)}), 400
    except StateGateError as exc:
        return jsonify({"ok": False, "error": exc.message}), 403
    state.save_draft(draft)
    return _draft_json(draft)


@bookings_bp.route("/draft", methods=["DELETE"])
@login_required
def discard_draft():
    state.clear_draft()
    return jsonify({"ok": True})


@bookings_bp.route("/draft/submit", methods=["POST"])
@login_required
def submit_draft():
    draft = state.get_draft(fare_lookup)
    if not draft:
        return _no_draft()
    data = request.get_json(silent=True) or {}
    if data.get("modificationDetails"):
        draft.fields["modificationDetails"] = str(data["modificationDetails"]).strip()

    try:
        board, identity = _board()
        booking = submit_modification(draft, board, store, identity)
    except ValidationError as exc:
        # keep the highlighted errors with the draft
        state.save_draft(draft)
        return jsonify({"ok": False, "error": exc.message, "errors": exc.errors}), 400
    except AlreadyProcessing as exc:
        return jsonify({"ok": False, "error": exc.message}), 409
    except StateGateError as exc:
        return jsonify({"ok": False, "error": exc.message}), 403
    except SubmissionError as exc:
        cause = exc.__cause__
        status = 503 if isinstance(cause, BackendUnavailable) else 502
        if isinstance(cause, BackendRejected) and cause.status_code == 404:
            status = 404
        return jsonify({"ok": False, "error": exc.message}), status
    except BackendUnavailable as exc:
        return _unavailable(exc)

    state.clear_draft()
    notify_booking_modified(booking)
    return jsonify({"ok": True, "booking": booking, "message": "Booking modified successfully"})
