"""
Request lifecycle and action gating.

The lifecycle of a (booking, request kind) pair is never stored; it is derived
from the booking status and the requests on file::

    NONE -> PENDING -> APPROVED -> ACTED   (booking becomes modified/cancelled)
    NONE -> PENDING -> REJECTED            (blocks further requests of that kind)

Every "may the user do X" decision goes through the ``can_*`` functions below.
Bookings and requests are the wire dicts produced by the models.
"""

from enum import Enum
from typing import Iterable, List, Optional

from .errors import StateGateError

MODIFICATION = "modification"
CANCELLATION = "cancellation"

CONFIRMED = "confirmed"
MODIFIED = "modified"
CANCELLED = "cancelled"

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"

# booking status -> statuses it may move to
BOOKING_TRANSITIONS = {
    CONFIRMED: {MODIFIED, CANCELLED},
    MODIFIED: set(),
    CANCELLED: set(),
}


class LifecycleState(str, Enum):
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTED = "acted"


def _status(booking: dict) -> str:
    return (booking.get("status") or CONFIRMED).lower()


def requests_for(booking: dict, requests: Iterable[dict], kind: str) -> List[dict]:
    """Requests of ``kind`` filed against ``booking``, newest first."""
    booking_id = str(booking.get("id"))
    matching = [
        r for r in requests
        if str(r.get("bookingId")) == booking_id and r.get("requestType") == kind
    ]
    return sorted(matching, key=lambda r: (r.get("createdAt") or "", r.get("id") or 0), reverse=True)


def latest_request(booking: dict, requests: Iterable[dict], kind: str) -> Optional[dict]:
    found = requests_for(booking, requests, kind)
    return found[0] if found else None


def has_rejected(booking: dict, requests: Iterable[dict], kind: str) -> bool:
    return any(r.get("status") == REJECTED for r in requests_for(booking, requests, kind))


def lifecycle_state(booking: dict, requests: Iterable[dict], kind: str) -> LifecycleState:
    acted_status = MODIFIED if kind == MODIFICATION else CANCELLED
    if _status(booking) == acted_status:
        return LifecycleState.ACTED
    latest = latest_request(booking, requests, kind)
    if latest is None:
        return LifecycleState.NONE
    return LifecycleState(latest.get("status") or PENDING)


def _pending(booking, requests, kind) -> bool:
    latest = latest_request(booking, requests, kind)
    return bool(latest and latest.get("status") == PENDING)


def _approved(booking, requests, kind) -> bool:
    latest = latest_request(booking, requests, kind)
    return bool(latest and latest.get("status") == APPROVED)


def can_request_modification(booking: dict, requests: Iterable[dict]) -> bool:
    requests = list(requests)
    if _status(booking) in (MODIFIED, CANCELLED):
        return False
    if _pending(booking, requests, CANCELLATION):
        return False
    if _pending(booking, requests, MODIFICATION) or _approved(booking, requests, MODIFICATION):
        return False
    if has_rejected(booking, requests, MODIFICATION):
        return False
    return True


def can_act_on_approved_modification(booking: dict, requests: Iterable[dict]) -> bool:
    requests = list(requests)
    if _status(booking) != CONFIRMED:
        return False
    if _pending(booking, requests, CANCELLATION):
        return False
    return _approved(booking, requests, MODIFICATION)


def can_request_cancellation(booking: dict, requests: Iterable[dict]) -> bool:
    requests = list(requests)
    # a modified booking is locked as well
    if _status(booking) in (MODIFIED, CANCELLED):
        return False
    if _pending(booking, requests, CANCELLATION) or _approved(booking, requests, CANCELLATION):
        return False
    if has_rejected(booking, requests, CANCELLATION):
        return False
    return True


def can_request(booking: dict, requests: Iterable[dict], kind: str) -> bool:
    if kind == MODIFICATION:
        return can_request_modification(booking, requests)
    if kind == CANCELLATION:
        return can_request_cancellation(booking, requests)
    raise ValueError(f"Unknown request type: {kind}")


def require_can_request(booking: dict, requests: Iterable[dict], kind: str):
    requests = list(requests)
    if not can_request(booking, requests, kind):
        raise StateGateError(gate_reason(booking, requests, kind))


def gate_reason(booking: dict, requests: Iterable[dict], kind: str) -> str:
    """Why a new request of ``kind`` is not allowed, phrased for the user."""
    requests = list(requests)
    status = _status(booking)
    if status == MODIFIED:
        return "This booking has already been modified and cannot be changed again."
    if status == CANCELLED:
        return "This booking has been cancelled."
    if kind == MODIFICATION and _pending(booking, requests, CANCELLATION):
        return "This booking has a pending cancellation request and cannot be modified."
    if _pending(booking, requests, kind):
        return f"A {kind} request for this booking is already pending."
    if _approved(booking, requests, kind):
        return f"A {kind} request for this booking has already been approved."
    if has_rejected(booking, requests, kind):
        return f"The {kind} request for this booking was rejected."
    return f"A {kind} request is not available for this booking."


def booking_actions(booking: dict, requests: Iterable[dict]) -> dict:
    """Button state for the dashboard: ``{action: {"enabled": bool, "label": str}}``."""
    requests = list(requests)
    status = _status(booking)
    mod_state = lifecycle_state(booking, requests, MODIFICATION)

    if status == MODIFIED:
        label = "Already Modified"
    elif status == CANCELLED:
        label = "Cancelled"
    elif has_rejected(booking, requests, MODIFICATION):
        label = "Modification Rejected"
    elif mod_state == LifecycleState.APPROVED:
        label = "Modification Approved"
    elif mod_state == LifecycleState.PENDING:
        label = "Modification Pending"
    elif _pending(booking, requests, CANCELLATION):
        label = "Modification Disabled"
    else:
        label = "Request Modification"
    request_modification = {"enabled": can_request_modification(booking, requests), "label": label}

    modify = {"enabled": can_act_on_approved_modification(booking, requests), "label": "Modify Booking"}
    if status == MODIFIED:
        modify["label"] = "Already Modified"

    cancel_state = lifecycle_state(booking, requests, CANCELLATION)
    if status == CANCELLED or cancel_state == LifecycleState.APPROVED:
        label = "Cancelled"
    elif status == MODIFIED:
        label = "Cancellation Unavailable"
    elif has_rejected(booking, requests, CANCELLATION):
        label = "Cancellation Rejected"
    elif cancel_state == LifecycleState.PENDING:
        label = "Cancellation Pending"
    else:
        label = "Request Cancellation"
    request_cancellation = {"enabled": can_request_cancellation(booking, requests), "label": label}

    return {
        "requestModification": request_modification,
        "modify": modify,
        "requestCancellation": request_cancellation,
    }


def booking_badge(booking: dict, requests: Iterable[dict]) -> str:
    requests = list(requests)
    status = _status(booking)
    if status in (MODIFIED, CANCELLED):
        return status.upper()
    if _pending(booking, requests, MODIFICATION) or _pending(booking, requests, CANCELLATION):
        return "PENDING"
    return "CONFIRMED"


def transition_booking(current: str, target: str) -> str:
    """Validate a forward-only booking status change and return ``target``."""
    current = (current or CONFIRMED).lower()
    if target not in BOOKING_TRANSITIONS.get(current, set()):
        raise StateGateError(f"A {current} booking cannot become {target}.")
    return target


def decide(request: dict, status: str) -> str:
    """Validate an admin decision on ``request``; requests are decided once."""
    if status not in (APPROVED, REJECTED):
        raise StateGateError("Invalid status provided")
    if request.get("status") != PENDING:
        raise StateGateError(f"This request has already been {request.get('status')}.")
    return status
