"""Tests for wizard.validators — pure answer checks."""

import pytest

from errors import ValidationCode, ValidationError
from wizard.state import Step, StepKind
from wizard.steps import COMPANY_STEPS, PROFILE_STEPS
from wizard.validators import validate

EMAIL, NAME, DOMAIN = PROFILE_STEPS
SKILLS = COMPANY_STEPS[2]


def _code(step, raw):
    with pytest.raises(ValidationError) as exc:
        validate(step, raw)
    return exc.value.code


class TestEmail:
    @pytest.mark.parametrize("raw", ["a@b.co", "first.last+tag@mail.example.org"])
    def test_accepts_valid_shapes(self, raw):
        assert validate(EMAIL, raw) == raw

    def test_trims_and_lowercases(self):
        assert validate(EMAIL, "  Ada@Example.COM ") == "ada@example.com"

    @pytest.mark.parametrize("raw", [
        "not-an-email", "@b.co", "a@b", "a@@b.co", "a@b@c.co", "a b@c.co", "a@.co", "a@b.",
    ])
    def test_rejects_bad_shapes(self, raw):
        assert _code(EMAIL, raw) is ValidationCode.INVALID_FORMAT

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_empty_is_too_short(self, raw):
        assert _code(EMAIL, raw) is ValidationCode.TOO_SHORT


class TestName:
    def test_single_character_is_too_short(self):
        assert _code(NAME, "A") is ValidationCode.TOO_SHORT

    def test_length_counts_after_trimming(self):
        assert _code(NAME, "  A  ") is ValidationCode.TOO_SHORT
        assert validate(NAME, "  Ada ") == "Ada"


class TestFreeTextWithoutRule:
    def test_any_non_blank_text_passes(self):
        step = Step(0, "note", "Anything else?")
        assert validate(step, " x ") == "x"
        assert _code(step, "\t") is ValidationCode.TOO_SHORT


class TestSingleChoice:
    def test_returns_label(self):
        assert validate(DOMAIN, "Tech") == "Tech"

    @pytest.mark.parametrize("raw", [None, "", "  "])
    def test_nothing_chosen(self, raw):
        assert _code(DOMAIN, raw) is ValidationCode.NO_SELECTION

    def test_label_not_offered(self):
        assert _code(DOMAIN, "Astrology") is ValidationCode.INVALID_FORMAT


class TestMultiChoice:
    def test_order_preserving_and_duplicate_free(self):
        assert validate(SKILLS, ["SQL", "Python", "SQL", "AWS"]) == ["SQL", "Python", "AWS"]

    @pytest.mark.parametrize("raw", [None, []])
    def test_empty_selection(self, raw):
        assert _code(SKILLS, raw) is ValidationCode.EMPTY_SELECTION

    def test_label_not_offered(self):
        assert _code(SKILLS, ["Python", "COBOL"]) is ValidationCode.INVALID_FORMAT


class TestNonTextInput:
    @pytest.mark.parametrize("raw", [["A"], {"x": 1}, 12, 3.5, True])
    def test_free_text_requires_a_string(self, raw):
        assert _code(NAME, raw) is ValidationCode.INVALID_FORMAT
        assert _code(EMAIL, raw) is ValidationCode.INVALID_FORMAT

    @pytest.mark.parametrize("raw", [5, True, 3.5, {"SQL": 1}])
    def test_multi_choice_rejects_non_lists(self, raw):
        assert _code(SKILLS, raw) is ValidationCode.INVALID_FORMAT

    def test_multi_choice_rejects_non_string_items(self):
        assert _code(SKILLS, ["SQL", 7]) is ValidationCode.INVALID_FORMAT

    def test_multi_choice_accepts_single_label(self):
        assert validate(SKILLS, "SQL") == ["SQL"]

    @pytest.mark.parametrize("raw", [["Tech"], 1, False])
    def test_single_choice_requires_a_label(self, raw):
        assert _code(DOMAIN, raw) is ValidationCode.INVALID_FORMAT


def test_validation_is_idempotent():
    once = validate(EMAIL, " A@B.co ")
    assert validate(EMAIL, once) == once


def test_error_carries_user_message():
    with pytest.raises(ValidationError) as exc:
        validate(DOMAIN, None)
    assert exc.value.message
    assert exc.value.to_dict()["code"] == "NoSelection"


def test_step_kinds_are_covered():
    kinds = {s.kind for s in PROFILE_STEPS + COMPANY_STEPS}
    assert kinds == set(StepKind)
