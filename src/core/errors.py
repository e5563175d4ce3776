"""Error taxonomy for the routine engine."""

from enum import Enum

from pydantic import BaseModel


class ErrorKind(Enum):
    """Categories of errors the engine reports to its callers."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    INVALID_TRANSITION = "invalid_transition"
    UNKNOWN_ITEM = "unknown_item"
    NOT_FOUND = "not_found"
    REPOSITORY = "repository"
    UNKNOWN = "unknown"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Routine errors
    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_SCHEDULE_CONFLICT = "ERR_SCHEDULE_CONFLICT"

    # Storage errors
    ERR_CONFLICT = "ERR_CONFLICT"

    # Execution errors
    ERR_INVALID_TRANSITION = "ERR_INVALID_TRANSITION"
    ERR_UNKNOWN_CHECKLIST_ITEM = "ERR_UNKNOWN_CHECKLIST_ITEM"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"

    # Backend errors
    ERR_REPOSITORY = "ERR_REPOSITORY"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error payload with enough detail to render or log."""

    kind: str
    code: str
    message: str


class EngineError(Exception):
    """Base class for every error raised by the engine."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    code: str = ErrorCode.ERR_UNKNOWN

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(EngineError):
    """Payload rejected before any persistence attempt."""

    kind = ErrorKind.VALIDATION
    code = ErrorCode.ERR_VALIDATION


class ConflictError(EngineError):
    """Write rejected by a uniqueness rule, such as a lost race creating an open execution."""

    kind = ErrorKind.CONFLICT
    code = ErrorCode.ERR_CONFLICT


class ScheduleConflictError(ConflictError):
    """New daily routine overlaps one the responsible person already has."""

    code = ErrorCode.ERR_SCHEDULE_CONFLICT


class InvalidTransitionError(EngineError):
    """Lifecycle call that is not allowed from the execution's current state."""

    kind = ErrorKind.INVALID_TRANSITION
    code = ErrorCode.ERR_INVALID_TRANSITION


class UnknownItemError(EngineError):
    """Checklist item that does not belong to the execution's routine template."""

    kind = ErrorKind.UNKNOWN_ITEM
    code = ErrorCode.ERR_UNKNOWN_CHECKLIST_ITEM


class NotFoundError(EngineError):
    """Referenced routine, execution or row does not exist."""

    kind = ErrorKind.NOT_FOUND
    code = ErrorCode.ERR_NOT_FOUND


class RepositoryError(EngineError):
    """Backend unreachable, timed out, or a write failed."""

    kind = ErrorKind.REPOSITORY
    code = ErrorCode.ERR_REPOSITORY


def to_error_response(exception: Exception) -> ErrorResponse:
    """Build the structured payload for an exception.

    Engine errors keep their kind and message verbatim. Anything else is
    reported as unknown with a generic message so internals do not leak.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with kind, code and message
    """
    if isinstance(exception, EngineError):
        return ErrorResponse(kind=exception.kind.value, code=exception.code, message=exception.message)

    return ErrorResponse(
        kind=ErrorKind.UNKNOWN.value,
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
    )
