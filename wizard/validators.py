"""Answer validators — pure, idempotent checks that return the normalized value.

Every check raises ValidationError on failure; nothing here touches state.
"""

import re
from typing import Any, Callable, Dict, List, Sequence

from errors import ValidationCode, ValidationError
from wizard.state import Rule, Step, StepKind

# local@domain.tld: no whitespace, a single "@" and a dotted domain
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@.]+(?:\.[^\s@.]+)+$")

NAME_MIN_LENGTH = 2


def _text(raw: Any) -> str:
    """Trimmed text; empty / whitespace-only input never counts as an answer."""
    if raw is None:
        raise ValidationError(ValidationCode.TOO_SHORT)
    if not isinstance(raw, str):
        raise ValidationError(ValidationCode.INVALID_FORMAT, "Please answer with text.")
    val = raw.strip()
    if not val:
        raise ValidationError(ValidationCode.TOO_SHORT)
    return val


def _normalize_email(raw: Any) -> str:
    val = _text(raw)
    if not _EMAIL_RE.match(val):
        raise ValidationError(ValidationCode.INVALID_FORMAT, "Please enter a valid email address.")
    return val.lower()


def _normalize_name(raw: Any) -> str:
    val = _text(raw)
    if len(val) < NAME_MIN_LENGTH:
        raise ValidationError(ValidationCode.TOO_SHORT, "Please enter at least 2 characters.")
    return val


# Map rule → normalizer
TEXT_NORMALIZERS: Dict[Rule, Callable[[Any], str]] = {
    Rule.EMAIL: _normalize_email,
    Rule.NAME: _normalize_name,
}


def _label(step: Step, item: Any) -> str:
    if not isinstance(item, str):
        raise ValidationError(ValidationCode.INVALID_FORMAT, "Please pick from the listed options.")
    label = item.strip()
    if label not in step.choices:
        raise ValidationError(ValidationCode.INVALID_FORMAT, f"'{label}' is not one of the options.")
    return label


def _single_choice(step: Step, raw: Any) -> str:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError(ValidationCode.NO_SELECTION)
    return _label(step, raw)


def _multi_choice(step: Step, raw: Any) -> List[str]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError(ValidationCode.EMPTY_SELECTION)
    if isinstance(raw, str):
        items: Sequence[Any] = [raw]
    elif isinstance(raw, (list, tuple)):
        items = raw
    else:
        raise ValidationError(ValidationCode.INVALID_FORMAT, "Please pick from the listed options.")

    chosen: List[str] = []
    for item in items:
        label = _label(step, item)
        if label not in chosen:
            chosen.append(label)
    if not chosen:
        raise ValidationError(ValidationCode.EMPTY_SELECTION)
    return chosen


def validate(step: Step, raw: Any) -> Any:
    """Check *raw* against the step's rule and return the normalized value."""
    if step.kind is StepKind.SINGLE_CHOICE:
        return _single_choice(step, raw)
    if step.kind is StepKind.MULTI_CHOICE:
        return _multi_choice(step, raw)

    normalizer = TEXT_NORMALIZERS.get(step.rule) if step.rule else None
    if normalizer:
        return normalizer(raw)
    return _text(raw)
