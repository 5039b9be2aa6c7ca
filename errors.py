"""Error taxonomy for the onboarding flow.

ValidationError, AuthorizationError, PersistenceError and AlreadyInProgress are
recovered by the wizard engine / linking aggregator and handed back to the
caller as values. InvalidOperation signals caller misuse and is raised.
"""

from enum import Enum


class ValidationCode(str, Enum):
    INVALID_FORMAT = "InvalidFormat"
    TOO_SHORT = "TooShort"
    NO_SELECTION = "NoSelection"
    EMPTY_SELECTION = "EmptySelection"


# User-facing text shown inline under the active question
VALIDATION_MESSAGES: dict[ValidationCode, str] = {
    ValidationCode.INVALID_FORMAT: "That doesn't look right. Please check the format.",
    ValidationCode.TOO_SHORT: "Please enter at least a couple of characters.",
    ValidationCode.NO_SELECTION: "Please pick one of the options.",
    ValidationCode.EMPTY_SELECTION: "Please select at least one option.",
}


class OnboardingError(Exception):
    """Base class for every error raised or returned by the flow."""

    kind = "error"

    def __init__(self, reason: str = ""):
        super().__init__(reason)
        self.reason = reason

    def to_dict(self) -> dict:
        return {"kind": self.kind, "reason": self.reason}


class ValidationError(OnboardingError):
    """User-correctable answer problem. Blocks the current step only."""

    kind = "validation"

    def __init__(self, code: ValidationCode, message: str | None = None):
        self.code = code
        self.message = message or VALIDATION_MESSAGES[code]
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "code": self.code.value, "message": self.message}


class AuthorizationError(OnboardingError):
    """One provider's authorization failed or was cancelled by the user."""

    kind = "authorization"


class PersistenceError(OnboardingError):
    """A durable write or lookup failed. Retryable."""

    kind = "persistence"


class AlreadyInProgress(OnboardingError):
    """A second operation was started on a target that is still busy."""

    kind = "already_in_progress"


class InvalidOperation(OnboardingError):
    """The operation is not allowed in the current state."""

    kind = "invalid_operation"
