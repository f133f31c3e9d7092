"""Error taxonomy shared by the engines and the HTTP layer.

Every error carries a stable ``kind`` and the HTTP status it maps to, so the
exception handlers in ``main.py`` can render ``{"error": kind, "message": ...}``
without knowing the individual classes.
"""


class PortalError(Exception):
    kind = "error"
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        body = {"error": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFound(PortalError):
    kind = "not_found"
    status_code = 404
    default_message = "Resource not found"


class EnrollmentNotFound(NotFound):
    default_message = "Enrollment not found"


class ValidationError(PortalError):
    kind = "validation_error"
    status_code = 400
    default_message = "Invalid request"


class CapacityExceeded(PortalError):
    kind = "capacity_exceeded"
    status_code = 409
    default_message = "Section is at full capacity"


class DuplicateEnrollment(PortalError):
    kind = "duplicate_enrollment"
    status_code = 409
    default_message = "Student is already enrolled"


class Conflict(PortalError):
    kind = "conflict"
    status_code = 409
    default_message = "The request conflicts with existing data"


class MarkOutOfRange(PortalError):
    kind = "mark_out_of_range"
    status_code = 400
    default_message = "Marks are out of range"


class Unauthorized(PortalError):
    kind = "unauthorized"
    status_code = 401
    default_message = "Not authenticated"


class Forbidden(PortalError):
    kind = "forbidden"
    status_code = 403
    default_message = "You do not have access to this resource"


class TransactionFailure(PortalError):
    kind = "transaction_failure"
    status_code = 500
    default_message = "The operation could not be completed"
