"""Error taxonomy for sheetplan.

Provides:
- SheetPlanError: Base class carrying a machine-readable code and a fix hint
- RemoteError family: Failures talking to the remote spreadsheet service
- PlanError family: Domain errors raised by the plan state machine
- ConfigurationError: Settings that cannot be used to build a store

Remote errors know whether they are transient. Only the resilient access
layer decides whether a transient error is retried; everything above it
just propagates.
"""

from typing import Any


class ErrorCode:
    """Standard error codes."""

    # Remote errors
    NETWORK_ERROR = "NETWORK_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    AUTH_ERROR = "AUTH_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"
    API_ERROR = "API_ERROR"

    # Domain errors
    PLAN_NOT_FOUND = "PLAN_NOT_FOUND"
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    INVALID_UPDATE = "INVALID_UPDATE"
    STALE_WRITE = "STALE_WRITE"

    # Internal errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


TRY_AGAIN_LATER = "The spreadsheet service is unavailable right now. Try again later."
CHECK_ACCESS = (
    "Check that the spreadsheet is shared with the service account (Editor role) "
    "and that the credentials are valid."
)


class SheetPlanError(Exception):
    """Base error for sheetplan.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        fix: Actionable instruction for whoever sees the error
        details: Additional error details
    """

    code: str = "SHEETPLAN_ERROR"
    fix: str = ""

    def __init__(
        self,
        message: str,
        fix: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if fix is not None:
            self.fix = fix
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "message": self.message,
            "code": self.code,
            "fix": self.fix,
            "details": self.details,
        }


# =============================================================================
# Remote errors
# =============================================================================


class RemoteError(SheetPlanError):
    """A failed call against the remote spreadsheet service.

    Attributes:
        status: HTTP-style status code, if the service answered
        error_code: Transport-level code (e.g. "ECONNRESET"), if any
        retry_after: Server-supplied retry hint in seconds
        attempts: Number of attempts made before this error surfaced
    """

    code = ErrorCode.API_ERROR
    fix = CHECK_ACCESS
    transient = False

    def __init__(
        self,
        message: str,
        status: int | None = None,
        error_code: str | None = None,
        retry_after: float | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details=details)
        self.status = status
        self.error_code = error_code
        self.retry_after = retry_after
        self.attempts = 1

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "status": self.status,
                "error_code": self.error_code,
                "transient": self.transient,
                "attempts": self.attempts,
            }
        )
        return data

    @classmethod
    def from_status(
        cls,
        status: int,
        message: str,
        retry_after: float | None = None,
    ) -> "RemoteError":
        """Build the error class matching an HTTP status."""
        error_cls = _STATUS_ERRORS.get(status)
        if error_cls is None:
            error_cls = ServerError if status >= 500 else RemoteError
        return error_cls(message, status=status, retry_after=retry_after)


class NetworkError(RemoteError):
    """Connection-level failure (reset, timeout, DNS)."""

    code = ErrorCode.NETWORK_ERROR
    fix = "Check your network connection. " + TRY_AGAIN_LATER
    transient = True

    def __init__(self, message: str, error_code: str, **kwargs: Any):
        super().__init__(f"Connection failed: {message}", error_code=error_code, **kwargs)


class RateLimitedError(RemoteError):
    """The service rejected the call with 429."""

    code = ErrorCode.RATE_LIMITED
    fix = TRY_AGAIN_LATER
    transient = True


class ServerError(RemoteError):
    """The service failed with a 5xx status."""

    code = ErrorCode.SERVICE_UNAVAILABLE
    fix = TRY_AGAIN_LATER
    transient = True


class AuthError(RemoteError):
    """Credentials are missing, expired, or rejected (401)."""

    code = ErrorCode.AUTH_ERROR


class PermissionDeniedError(RemoteError):
    """The credentials cannot access the spreadsheet (403)."""

    code = ErrorCode.PERMISSION_DENIED


class CellNotFoundError(RemoteError):
    """The spreadsheet, sheet, or range does not exist (404)."""

    code = ErrorCode.NOT_FOUND
    fix = "Check the spreadsheet id and the plan cell reference."


class BadRequestError(RemoteError):
    """The service rejected the request as malformed (400)."""

    code = ErrorCode.BAD_REQUEST
    fix = "Check the cell reference format (e.g. 'AGENTSCAPE!C6')."


_STATUS_ERRORS: dict[int, type[RemoteError]] = {
    400: BadRequestError,
    401: AuthError,
    403: PermissionDeniedError,
    404: CellNotFoundError,
    429: RateLimitedError,
}


# =============================================================================
# Domain errors
# =============================================================================


class PlanError(SheetPlanError):
    """Base class for plan domain errors. Never retried."""

    code = "PLAN_ERROR"


class PlanNotFoundError(PlanError):
    """No plan exists in the plan cell."""

    code = ErrorCode.PLAN_NOT_FOUND
    fix = "Create a plan first with create_plan()."

    def __init__(self, message: str = "No plan found"):
        super().__init__(message)


class TaskNotFoundError(PlanError):
    """The requested step does not exist in the current plan."""

    code = ErrorCode.TASK_NOT_FOUND

    def __init__(self, step: str, available_steps: list[str] | None = None):
        self.step = step
        self.available_steps = list(available_steps or [])
        if self.available_steps:
            fix = f"Use one of the available steps: {', '.join(self.available_steps)}"
        else:
            fix = "The plan has no tasks. Add phases with create_plan()."
        super().__init__(
            f"Task '{step}' not found in plan",
            fix=fix,
            details={"step": step, "available_steps": self.available_steps},
        )


class InvalidTransitionError(PlanError):
    """A convenience transition is not allowed from the task's current status."""

    code = ErrorCode.INVALID_TRANSITION

    def __init__(self, step: str, current: str, target: str, allowed: list[str]):
        self.step = step
        self.current = current
        self.target = target
        self.allowed = allowed
        hint = f"allowed from '{current}': {', '.join(allowed)}" if allowed else f"'{current}' is terminal"
        super().__init__(
            f"Cannot move task '{step}' from '{current}' to '{target}'",
            fix=f"Pick a valid transition ({hint}).",
            details={"step": step, "current": current, "target": target},
        )


class InvalidTaskUpdateError(PlanError):
    """A task update is missing its required annotation or names no known status."""

    code = ErrorCode.INVALID_UPDATE
    fix = "Blocked updates need a reason and review updates need a note."


class StaleWriteError(PlanError):
    """The plan cell changed between read and write."""

    code = ErrorCode.STALE_WRITE
    fix = "Re-read the plan and apply the change again."

    def __init__(self, expected_version: str, actual_version: str | None):
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            "Plan changed since it was read",
            details={"expected_version": expected_version, "actual_version": actual_version},
        )


# =============================================================================
# Configuration errors
# =============================================================================


class ConfigurationError(SheetPlanError):
    """Settings cannot be used to build the requested component."""

    code = ErrorCode.CONFIGURATION_ERROR
    fix = "Set SHEETPLAN_SPREADSHEET_ID and GOOGLE_SHEETS_TOKEN, or use the memory transport."
