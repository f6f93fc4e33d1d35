import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from .errors import BackendRejected, BackendUnavailable
from .identity import IdentityContext
from .models import REQUEST_TYPES
from .notifications import notifications_feed, notify_request_created
from .store import BookingStore, owns

logger = logging.getLogger(__name__)

requests_bp = Blueprint("requests", __name__, url_prefix="/requests")

store = BookingStore()


# file a modification or cancellation request for one of the user's bookings
@requests_bp.route("/", methods=["POST"])
@login_required
def create_request():
    data = request.get_json(silent=True) or request.form or {}
    kind = (data.get("requestType") or "").strip().lower()
    reason = (data.get("reason") or "").strip()
    details = (data.get("details") or "").strip()
    booking_id = data.get("bookingId")

    if kind not in REQUEST_TYPES:
        return jsonify({"ok": False, "error": "Request type must be modification or cancellation"}), 400
    if not booking_id or not reason or not details:
        return jsonify({"ok": False, "error": "Please provide a reason and details for your request"}), 400

    identity = IdentityContext.from_user(current_user)
    try:
        booking = store.get_booking(booking_id)
        if not owns(booking, identity):
            return jsonify({"ok": False, "error": "Booking not found"}), 404
        req = store.create_request({
            "bookingId": booking["id"],
            "bookingType": booking.get("bookingType"),
            "userId": identity.id,
            "userEmail": identity.email,
            "userName": identity.display_name,
            "requestType": kind,
            "reason": reason,
            "details": details,
        })
    except BackendRejected as exc:
        status = exc.status_code if exc.status_code in (404, 409) else 400
        return jsonify({"ok": False, "error": exc.message}), status
    except BackendUnavailable as exc:
        return jsonify({"ok": False, "error": exc.message}), 503

    notify_request_created(req, booking)
    return jsonify({"ok": True, "request": req}), 201


@requests_bp.route("/")
@login_required
def my_requests():
    identity = IdentityContext.from_user(current_user)
    try:
        reqs = store.fetch_requests_for_user(identity)
    except BackendUnavailable as exc:
        return jsonify({"ok": False, "error": exc.message}), 503
    return jsonify({"ok": True, "requests": reqs})


# decided requests shown as notices on the user dashboard
@requests_bp.route("/notifications")
@login_required
def my_notifications():
    identity = IdentityContext.from_user(current_user)
    try:
        reqs = store.fetch_requests_for_user(identity)
    except BackendUnavailable as exc:
        return jsonify({"ok": False, "error": exc.message}), 503
    return jsonify({"ok": True, "notifications": notifications_feed(reqs)})
