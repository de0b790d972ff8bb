"""Error taxonomy shared by the order and payment apps.

Each error carries the HTTP status the views answer with and a short
machine-readable ``code``; ``message`` is meant for the caller.
"""


class OrderError(Exception):
    status_code = 500
    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def as_dict(self) -> dict:
        return {"success": False, "message": self.message, "code": self.code}


class ValidationError(OrderError):
    status_code = 400
    code = "validation_error"


class ForbiddenError(OrderError):
    status_code = 403
    code = "forbidden"


class NotFoundError(OrderError):
    status_code = 404
    code = "not_found"


class InvalidStateError(OrderError):
    status_code = 409
    code = "invalid_state"

    NOT_ACCEPTED = "not_accepted"
    ALREADY_PAID = "already_paid"

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason

    def as_dict(self) -> dict:
        data = super().as_dict()
        data["reason"] = self.reason
        return data


class SignatureError(OrderError):
    status_code = 400
    code = "invalid_signature"


class UpstreamError(OrderError):
    status_code = 502
    code = "upstream_error"
