"""Error taxonomy shared by the scheduling services and the JSON API."""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for user-displayable scheduling errors."""

    code = "SERVICE_ERROR"
    status = 400

    def __init__(self, message: str, code: str | None = None, status: int | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status

    def to_dict(self) -> dict:
        return {'error': self.message, 'code': self.code}

    def __str__(self):
        return self.message


class ValidationError(ServiceError):
    """Raised when input is malformed; always raised before any mutation."""

    code = "VALIDATION_ERROR"
    status = 400


class NotFoundError(ServiceError):
    code = "NOT_FOUND"
    status = 404


class ConflictError(ServiceError):
    """Raised when deleting a period or instance that still holds bookings."""

    code = "CONFLICT"
    status = 409


class CapacityFullError(ServiceError):
    code = "CAPACITY_FULL"
    status = 409


class InstanceCancelledError(ServiceError):
    code = "INSTANCE_CANCELLED"
    status = 409


class InstanceExpiredError(ServiceError):
    code = "INSTANCE_EXPIRED"
    status = 409


class PlayerIneligibleError(ServiceError):
    code = "PLAYER_INELIGIBLE"
    status = 403


__all__ = [
    'ServiceError',
    'ValidationError',
    'NotFoundError',
    'ConflictError',
    'CapacityFullError',
    'InstanceCancelledError',
    'InstanceExpiredError',
    'PlayerIneligibleError',
]
