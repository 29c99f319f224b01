"""
Business errors raised by the services.
The server maps each one to its HTTP status and a {success: false, message} body.
"""


class ServiceError(Exception):
    """Base class, unexpected failure"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Missing or malformed input"""
    status_code = 400


class ForbiddenError(ServiceError):
    """Role or ownership mismatch"""
    status_code = 403


class NotFoundError(ServiceError):
    """Lead or user absent"""
    status_code = 404


class ConflictError(ServiceError):
    """Duplicate lead this month, or a concurrent modification"""
    status_code = 409
