"""
Domain errors raised by the engagement services.

Each error carries a machine-readable ``reason`` and the HTTP status the
API layer renders it with, so precondition failures reach the client as a
specific, actionable message instead of a generic 500.
"""


class TalentPoolError(Exception):
    status_code = 400
    default_reason = "error"

    def __init__(self, message: str, reason: str = None):
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason


class NotFound(TalentPoolError):
    status_code = 404
    default_reason = "not_found"


class InvalidState(TalentPoolError):
    default_reason = "invalid_state"


class AlreadyActioned(InvalidState):
    default_reason = "already_actioned"


class Expired(TalentPoolError):
    default_reason = "expired"


class Unavailable(TalentPoolError):
    status_code = 503
    default_reason = "unavailable"
