"""Step wizard engine — sequences questions, validates answers, persists the result.

States are the step indices 0..N-1 plus a terminal Completed state
(``current_index == N``). Invalid submissions never move the pointer or touch
``answers``; the only way to reach Completed is a valid answer for every step,
in order. Once completed the answers are upserted through the persistence
port; on success the navigation port receives them and the engine closes.
"""

import logging
from typing import Any, Optional, Sequence

from config import INTRO_HOLD_SECONDS, PERSISTENCE_TIMEOUT_SECONDS, REVEAL_TICK_SECONDS
from errors import (
    AlreadyInProgress,
    InvalidOperation,
    OnboardingError,
    PersistenceError,
    ValidationError,
)
from ports.contracts import NavigationPort, PersistencePort
from ports.guard import call_port
from wizard.reveal import TextReveal
from wizard.state import Phase, Step, StepKind, SubmissionStatus, WizardState
from wizard.validators import validate


class WizardEngine:
    """One wizard session over an immutable list of steps."""

    def __init__(
        self,
        steps: Sequence[Step],
        persistence: PersistencePort,
        navigator: NavigationPort,
        *,
        identity_field: str,
        destination: str,
        intro: Optional[str] = None,
        tick: float = REVEAL_TICK_SECONDS,
        intro_hold: float = INTRO_HOLD_SECONDS,
        timeout: float = PERSISTENCE_TIMEOUT_SECONDS,
    ):
        if not steps:
            raise ValueError("a wizard needs at least one step")
        self.steps: tuple[Step, ...] = tuple(steps)
        self.identity_field = identity_field
        self.destination = destination
        self.intro = intro
        self.intro_hold = intro_hold
        self.timeout = timeout
        self.state = WizardState()
        self.reveal = TextReveal(self._on_frame, tick)
        self._persistence = persistence
        self._navigator = navigator
        self._closed = False

    # ── Read-only views ────────────────────────────────────────────────
    @property
    def step(self) -> Optional[Step]:
        """The active step, or None once completed."""
        idx = self.state.current_index
        return self.steps[idx] if idx < len(self.steps) else None

    @property
    def completed(self) -> bool:
        return self.state.current_index >= len(self.steps)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def progress(self) -> tuple[int, int]:
        return len(self.state.answers), len(self.steps)

    # ── Transitions ────────────────────────────────────────────────────
    def start(self) -> None:
        """Enter step 0, optionally after the intro banner has been revealed."""
        self._ensure_open()
        if self.intro:
            self.state.phase = Phase.INTRO
            self.reveal.reveal(self.intro, hold=self.intro_hold, on_complete=self._end_intro)
        else:
            self.enter_step(0)

    def _end_intro(self) -> None:
        if not self._closed and self.state.phase is Phase.INTRO:
            self.enter_step(0)

    def enter_step(self, index: int) -> None:
        """Go back to step *index* (the current one or an earlier one) and reveal its prompt."""
        self._ensure_open()
        if not 0 <= index < len(self.steps) or index > self.state.current_index:
            raise InvalidOperation(f"Step {index} cannot be entered from step {self.state.current_index}")
        self._enter(index)

    def _enter(self, index: int) -> None:
        step = self.steps[index]
        # The pointer moves only once the prompt reveal has started
        self.reveal.reveal(step.prompt)
        self.state.current_index = index
        self.state.phase = Phase.ASKING
        self.state.pending_answer = [] if step.kind is StepKind.MULTI_CHOICE else None
        self.state.last_error = None
        self.state.revealed_text = ""
        logging.debug(f"Entered step {index} ({step.field})")

    def select_choice(self, choice: str) -> Any:
        """Tentatively pick *choice*; multi-choice steps toggle it. Never advances."""
        self._ensure_open()
        self._leave_intro()
        step = self.step
        if step is None or not step.is_choice:
            raise InvalidOperation("The current step has no choices")

        if step.kind is StepKind.SINGLE_CHOICE:
            self.state.pending_answer = choice
        else:
            picked = list(self.state.pending_answer or [])
            if choice in picked:
                picked.remove(choice)
            else:
                picked.append(choice)
            self.state.pending_answer = picked
        return self.state.pending_answer

    async def confirm(self) -> Optional[OnboardingError]:
        """Commit the tentative selection of a choice step."""
        self._ensure_open()
        self._leave_intro()
        return await self.submit(self.state.pending_answer)

    async def submit(self, raw: Any) -> Optional[OnboardingError]:
        """
        Validate *raw* for the active step. Returns the ValidationError (state
        untouched) or, after the last step, whatever ``finalize`` returns.
        """
        self._ensure_open()
        self._leave_intro()
        step = self.step
        if step is None:
            raise InvalidOperation("All questions are already answered")

        try:
            value = validate(step, raw)
        except ValidationError as err:
            logging.warning(f"Step {step.index} ({step.field}) rejected: {err.code.value}")
            self.state.last_error = err
            return err

        # Answers change only once the next step is active
        if step.index < len(self.steps) - 1:
            self._enter(step.index + 1)
            self.state.answers[step.field] = value
            return None

        self.reveal.cancel()
        self.state.answers[step.field] = value
        self.state.pending_answer = None
        self.state.last_error = None
        self.state.current_index = len(self.steps)
        self.state.phase = Phase.COMPLETED
        logging.info(f"Wizard completed ({len(self.steps)} answers), submitting")
        return await self.finalize()

    async def finalize(self) -> Optional[OnboardingError]:
        """Persist the finalized answers and hand them to navigation. Safe to retry."""
        self._ensure_open()
        if not self.completed:
            raise InvalidOperation("Answer every question before submitting")
        if self.state.submission is SubmissionStatus.SUBMITTING:
            return AlreadyInProgress("Answers are already being submitted")

        answers = dict(self.state.answers)
        identity = str(answers.get(self.identity_field, ""))
        self.state.submission = SubmissionStatus.SUBMITTING
        self.state.failure_reason = None

        try:
            await call_port(
                self._persistence.upsert_answers(identity, answers),
                self.timeout,
                PersistenceError,
                "saving answers",
            )
        except PersistenceError as err:
            if self._closed:
                logging.info(f"Discarding late persistence failure for {identity}")
                return None
            logging.warning(f"Saving answers for {identity} failed: {err.reason}")
            self.state.submission = SubmissionStatus.FAILED
            self.state.failure_reason = err.reason
            return err

        if self._closed:
            logging.info(f"Discarding late persistence reply for {identity}")
            return None

        self.state.submission = SubmissionStatus.SUBMITTED
        logging.info(f"Answers saved for {identity}, navigating to {self.destination}")
        self._navigator.go(self.destination, answers)
        self.close()
        return None

    def close(self) -> None:
        """Tear down: stop the reveal; later port replies are dropped."""
        if self._closed:
            return
        self._closed = True
        self.reveal.cancel()
        self.state.phase = Phase.CLOSED

    # ── Helpers ────────────────────────────────────────────────────────
    def _on_frame(self, text: str) -> None:
        if not self._closed:
            self.state.revealed_text = text

    def _leave_intro(self) -> None:
        """A user action during the intro banner cuts it short."""
        if self.state.phase is Phase.INTRO:
            self.enter_step(0)

    def _ensure_open(self) -> None:
        if self._closed:
            raise InvalidOperation("This wizard session has ended")

    def snapshot(self) -> dict[str, Any]:
        step = self.step
        answered, total = self.progress
        return {
            **self.state.snapshot(),
            "step": None if step is None else {
                "index": step.index,
                "field": step.field,
                "prompt": step.prompt,
                "kind": step.kind.value,
                "choices": list(step.choices),
            },
            "progress": {"answered": answered, "total": total},
        }
