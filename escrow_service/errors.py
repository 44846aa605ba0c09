"""
Error kinds raised by the escrow core.
Each carries the HTTP status and error code the API layer renders.
"""


class EscrowServiceError(Exception):
    status_code = 500
    error_code = "INTERNAL_ERROR"
    default_message = "Something went wrong"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {
            "success": False,
            "error_code": self.error_code,
            "message": self.message,
        }


class ValidationError(EscrowServiceError):
    status_code = 400
    error_code = "VALIDATION_ERROR"
    default_message = "Invalid input"


class NotFound(EscrowServiceError):
    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "Resource not found"


class Forbidden(EscrowServiceError):
    status_code = 403
    error_code = "FORBIDDEN"
    default_message = "Access denied"


class Conflict(EscrowServiceError):
    status_code = 409
    error_code = "CONFLICT"
    default_message = "Resource state changed"


class InsufficientFunds(EscrowServiceError):
    status_code = 402
    error_code = "INSUFFICIENT_FUNDS"
    default_message = "Insufficient funds"


class InvalidTransition(EscrowServiceError):
    status_code = 422
    error_code = "INVALID_TRANSITION"
    default_message = "Invalid status transition"


class Internal(EscrowServiceError):
    default_message = "Internal server error"
