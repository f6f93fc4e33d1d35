"""
Error types raised by the booking modification workflow.

ValidationError and StateGateError are raised before anything is sent to the
store. BackendRejected / BackendUnavailable come out of the store and are turned
into a SubmissionError by the submission step, so callers only ever need to
show ``exc.message`` to the user.
"""

GENERIC_RETRY_MESSAGE = "We couldn't reach the booking service. Please try again in a moment."


class BookingWorkflowError(Exception):
    """Base class for every error the workflow reports to a user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingWorkflowError):
    """One or more field rules failed.

    ``errors`` keeps the evaluation order, so the first entry is the one shown.
    """

    def __init__(self, errors: dict):
        self.errors = dict(errors)
        first = next(iter(self.errors.values()), "Invalid modification.")
        super().__init__(first)


class StateGateError(BookingWorkflowError):
    """The action is not permitted in the booking's current lifecycle state."""


class SubmissionError(BookingWorkflowError):
    """The store refused the modification or could not be reached."""


class BackendRejected(BookingWorkflowError):
    """The store refused an operation; ``message`` is safe to show verbatim."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class BackendUnavailable(BookingWorkflowError):
    def __init__(self, message: str = GENERIC_RETRY_MESSAGE):
        super().__init__(message)


class AlreadyProcessing(StateGateError):
    """A submission for the same booking is still in flight."""
