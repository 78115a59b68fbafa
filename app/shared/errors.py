"""Domain error taxonomy shared by the slot and swap services.

Each error is an ``HTTPException`` so services can raise it directly, the
same way they raise ``HTTPException`` elsewhere; ``kind`` is the stable,
machine-readable name the client switches on.
"""

from fastapi import HTTPException


class DomainError(HTTPException):
    kind = "domain_error"
    default_status_code = 400

    def __init__(self, detail: str, status_code: int = None):
        super().__init__(status_code=status_code or self.default_status_code, detail=detail)

    @property
    def message(self) -> str:
        return self.detail


class InputValidationError(DomainError):
    """Malformed input: empty title, non-chronological times, reserved status"""

    kind = "validation_error"
    default_status_code = 400


class NotFoundError(DomainError):
    """Entity is absent or not owned by the caller"""

    kind = "not_found"
    default_status_code = 404


class ForbiddenError(DomainError):
    kind = "forbidden"
    default_status_code = 403


class InvalidStateError(DomainError):
    """Entity is not in the state the operation requires"""

    kind = "invalid_state"
    default_status_code = 400


class InvalidOperationError(DomainError):
    kind = "invalid_operation"
    default_status_code = 400


class ConflictError(DomainError):
    """A pre-existing or concurrent commitment blocks the operation"""

    kind = "conflict"
    default_status_code = 409
