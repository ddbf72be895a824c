"""
Exception types raised by the announcement services.

Every error carries the HTTP status the JSON API answers with. Services
raise these at their boundary; the blueprints never build error
responses by hand.
"""


class LearnHubError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {"status": "error", "message": self.message}
        payload.update(self.details)
        return payload


class ValidationError(LearnHubError):
    """Invariant violation or malformed input."""

    status_code = 400


class MissingReferenceError(LearnHubError):
    """A referenced course or user does not exist."""

    status_code = 400

    def __init__(self, message, missing_ids):
        super().__init__(message, missing_ids=list(missing_ids))
        self.missing_ids = list(missing_ids)


class NotFoundError(LearnHubError):
    status_code = 404


class AuthenticationRequired(LearnHubError):
    status_code = 401


class PermissionDenied(LearnHubError):
    status_code = 403


class DeliveryError(LearnHubError):
    """One announcement could not be delivered by the scheduled job.

    Raised and caught inside the job; never reaches an API caller.
    """

    def __init__(self, announcement_id, message):
        super().__init__(message, announcement_id=announcement_id)
        self.announcement_id = announcement_id
