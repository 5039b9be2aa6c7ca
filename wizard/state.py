"""Step and WizardState — the data the wizard engine owns."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from errors import ValidationError


class StepKind(str, Enum):
    FREE_TEXT = "free_text"
    SINGLE_CHOICE = "single_choice"
    MULTI_CHOICE = "multi_choice"


class Rule(str, Enum):
    EMAIL = "email"
    NAME = "name"


class SubmissionStatus(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    FAILED = "failed"
    SUBMITTED = "submitted"


class Phase(str, Enum):
    INTRO = "intro"
    ASKING = "asking"
    COMPLETED = "completed"
    CLOSED = "closed"


@dataclass(frozen=True)
class Step:
    """One question. Immutable once the step list is built."""

    index: int
    field: str
    prompt: str
    kind: StepKind = StepKind.FREE_TEXT
    rule: Optional[Rule] = None
    choices: tuple[str, ...] = ()

    @property
    def is_choice(self) -> bool:
        return self.kind is not StepKind.FREE_TEXT


@dataclass
class WizardState:
    """Mutable state of one wizard session."""

    current_index: int = 0
    revealed_text: str = ""
    pending_answer: Any = None
    answers: dict[str, Any] = field(default_factory=dict)   # insertion order = step order
    submission: SubmissionStatus = SubmissionStatus.IDLE
    failure_reason: Optional[str] = None
    last_error: Optional[ValidationError] = None
    phase: Phase = Phase.ASKING

    def snapshot(self) -> dict[str, Any]:
        pending = self.pending_answer
        return {
            "current_index": self.current_index,
            "revealed_text": self.revealed_text,
            "pending_answer": list(pending) if isinstance(pending, list) else pending,
            "answers": dict(self.answers),
            "submission": self.submission.value,
            "failure_reason": self.failure_reason,
            "last_error": self.last_error.to_dict() if self.last_error else None,
            "phase": self.phase.value,
        }
