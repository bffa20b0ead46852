"""
Typed failures raised by the service layer.

Each error knows its HTTP status and a stable machine code, so the API layer
can translate it into the response envelope without inspecting messages.
"""


class DomainError(Exception):
    status_code = 500
    code = "error"
    default_message = "Request failed"

    def __init__(self, message=None, *, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        body = {"code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(DomainError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid input"


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class OutOfStockError(DomainError):
    status_code = 400
    code = "out_of_stock"

    def __init__(self, available, requested, message=None):
        self.available = available
        self.requested = requested
        super().__init__(
            message or f"Insufficient stock available. Only {available} items in stock",
            details={"available": available, "requested": requested},
        )


class ConflictError(DomainError):
    status_code = 409
    code = "conflict"
    default_message = "Conflicting update"

    def __init__(self, message=None, *, field=None, retryable=False, details=None):
        self.field = field
        self.retryable = retryable
        if details is None and field is not None:
            details = {"field": field}
        super().__init__(message, details=details)


class InvalidStateError(DomainError):
    status_code = 400
    code = "invalid_state"

    def __init__(self, message, *, current=None, attempted=None):
        self.current = current
        self.attempted = attempted
        details = {"current": current}
        if attempted is not None:
            details["attempted"] = attempted
        super().__init__(message, details=details)


class InternalError(DomainError):
    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"
