from io import StringIO
import csv
import logging

from flask import Blueprint, Response, jsonify, request
from flask_login import current_user, login_required

from .errors import BackendRejected, BackendUnavailable
from .notifications import notify_request_decided
from .store import BookingStore

logger = logging.getLogger(__name__)

admin_dashboard_bp = Blueprint("admin_dashboard", __name__, url_prefix="/admin")

store = BookingStore()


def _forbidden():
    return jsonify({"ok": False, "error": "Forbidden"}), 403


def _summary(reqs):
    """Counts per status, for the dashboard header."""
    stats = {"total": len(reqs), "pending": 0, "approved": 0, "rejected": 0}
    for r in reqs:
        stats[r["status"]] = stats.get(r["status"], 0) + 1
    return stats


@admin_dashboard_bp.route("/requests")
@login_required
def list_requests():
    if not current_user.is_staff:
        return _forbidden()

    status = (request.args.get("status") or "").strip().lower() or None
    kind = (request.args.get("type") or "").strip().lower() or None
    try:
        reqs = store.list_requests(status)
    except BackendRejected as exc:
        return jsonify({"ok": False, "error": exc.message}), 400
    except BackendUnavailable as exc:
        return jsonify({"ok": False, "error": exc.message}), 503
    if kind:
        reqs = [r for r in reqs if r["requestType"] == kind]
    return jsonify({"ok": True, "stats": _summary(reqs), "requests": reqs})


@admin_dashboard_bp.route("/requests/<int:request_id>/decision", methods=["POST"])
@login_required
def decide(request_id):
    if not current_user.is_staff:
        return _forbidden()

    data = request.get_json(silent=True) or request.form or {}
    status = (data.get("status") or "").strip().lower()
    note = (data.get("adminNote") or "").strip() or None
    amount = data.get("amount")
    if amount in ("", None):
        amount = None
    else:
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            return jsonify({"ok": False, "error": "Amount must be a number"}), 400

    try:
        req = store.decide_request(request_id, status, admin_note=note, amount=amount, admin_id=current_user.id)
        booking = store.get_booking(req["bookingId"])
    except BackendRejected as exc:
        return jsonify({"ok": False, "error": exc.message}), exc.status_code
    except BackendUnavailable as exc:
        return jsonify({"ok": False, "error": exc.message}), 503

    notify_request_decided(req, booking)
    return jsonify({"ok": True, "request": req, "booking": booking})


@admin_dashboard_bp.route("/requests/report.csv")
@login_required
def download_requests_report():
    if not current_user.is_staff:
        return _forbidden()

    status = (request.args.get("status") or "").strip().lower() or None
    try:
        reqs = store.list_requests(status)
    except BackendRejected as exc:
        return jsonify({"ok": False, "error": exc.message}), 400
    except BackendUnavailable as exc:
        return jsonify({"ok": False, "error": exc.message}), 503

    output = StringIO()
    writer = csv.writer(output)

    writer.writerow([
        "Request ID",
        "Booking Ref",
        "Type",
        "Status",
        "Customer",
        "Email",
        "Reason",
        "Amount",
        "Created (UTC)",
        "Responded (UTC)",
    ])

    for r in reqs:
        writer.writerow([
            r["id"],
            f"BK-{r['bookingId']:06d}",
            r["requestType"],
            r["status"],
            r["userName"],
            r["userEmail"],
            r["reason"],
            "" if r["amount"] is None else f"{r['amount']:.2f}",
            r["createdAt"] or "",
            r["respondedAt"] or "",
        ])

    csv_data = output.getvalue()
    output.close()

    resp = Response(csv_data, mimetype="text/csv")
    resp.headers["Content-Disposition"] = "attachment; filename=change_requests.csv"
    return resp
