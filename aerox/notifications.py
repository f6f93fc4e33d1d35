import logging

from flask import current_app
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail
from twilio.rest import Client

logger = logging.getLogger(__name__)

DEFAULT_NOTES = {
    ("cancellation", "approved"): "A refund will be processed within 3 working days.",
    ("cancellation", "rejected"): "Please contact customer support for more information.",
    ("modification", "approved"): "You can now modify your booking from your dashboard.",
    ("modification", "rejected"): "Please contact customer support for more information.",
}


def _enabled() -> bool:
    return bool(current_app.config.get("NOTIFICATIONS_ENABLED"))


def send_email(to_email, subject, html):
    if not _enabled() or not to_email or not current_app.config.get("SENDGRID_API_KEY"):
        logger.debug("Email to %s skipped (notifications off)", to_email)
        return False
    try:
        sg = SendGridAPIClient(current_app.config["SENDGRID_API_KEY"])
        message = Mail(
            from_email=current_app.config["MAIL_FROM"],
            to_emails=to_email,
            subject=subject,
            html_content=html,
        )
        sg.send(message)
        return True
    except Exception:
        logger.exception("Email to %s failed", to_email)
        return False


def send_sms(to_phone, body):
    cfg = current_app.config
    if not _enabled() or not to_phone or not (cfg.get("TWILIO_SID") and cfg.get("TWILIO_TOKEN")):
        logger.debug("SMS to %s skipped (notifications off)", to_phone)
        return False
    try:
        client = Client(cfg["TWILIO_SID"], cfg["TWILIO_TOKEN"])
        client.messages.create(from_=cfg["TWILIO_PHONE"], to=to_phone, body=body)
        return True
    except Exception:
        logger.exception("SMS to %s failed", to_phone)
        return False


def notification_title(req: dict) -> str:
    return f"{req['requestType'].capitalize()} Request {req['status'].capitalize()}"


def notification_message(req: dict) -> str:
    return req.get("adminNote") or DEFAULT_NOTES.get((req["requestType"], req["status"]), "")


def notifications_feed(requests) -> list:
    """Decided requests turned into user-facing notices, newest decision first."""
    decided = [r for r in requests if r.get("status") in ("approved", "rejected")]
    decided.sort(key=lambda r: r.get("respondedAt") or r.get("createdAt") or "", reverse=True)
    return [
        {
            "id": r["id"],
            "bookingId": r["bookingId"],
            "type": r["requestType"],
            "status": r["status"],
            "title": notification_title(r),
            "message": notification_message(r),
            "amount": r.get("amount"),
            "date": r.get("respondedAt") or r.get("createdAt"),
        }
        for r in decided
    ]


# ---- workflow notices ---------------------------------------------------

def notify_request_created(req: dict, booking: dict):
    send_email(
        req["userEmail"],
        f"{req['requestType'].capitalize()} request received for {booking.get('bookingRef')}",
        f"<h3>Hi {req['userName']},</h3>"
        f"<p>We received your {req['requestType']} request for booking {booking.get('bookingRef')}"
        f" ({booking.get('from')} to {booking.get('to')}). We'll let you know once it has been reviewed.</p>",
    )


def notify_request_decided(req: dict, booking: dict):
    title = notification_title(req)
    note = notification_message(req)
    amount = req.get("amount")
    extra = ""
    if amount is not None:
        label = "Refund" if req["requestType"] == "cancellation" else "Additional fee"
        extra = f"<p>{label}: ${amount:.2f}</p>"
    send_email(
        req["userEmail"],
        f"{title}: {booking.get('bookingRef')}",
        f"<h3>{title}</h3><p>{note}</p>{extra}",
    )
    phone = (booking.get("contactInfo") or {}).get("phoneNumber")
    send_sms(phone, f"AeroX: your {req['requestType']} request for {booking.get('bookingRef')} was {req['status']}.")


def notify_booking_modified(booking: dict):
    email = (booking.get("contactInfo") or {}).get("email")
    send_email(
        email,
        f"Booking {booking.get('bookingRef')} modified",
        f"<h3>Your booking has been updated</h3>"
        f"<p>{booking.get('from')} to {booking.get('to')} on {booking.get('departureDate')}, "
        f"{booking.get('passengers')} passenger(s). New total: ${booking.get('totalPrice') or 0:.2f}</p>",
    )
