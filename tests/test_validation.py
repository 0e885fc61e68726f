"""
Record Validation Tests - Clinical Scoring Core
tests/test_validation.py
"""
import pytest

from clinical_scoring.core.exceptions import ValidationError
from clinical_scoring.services.validation import ShapeValidator
from tests.factories import make_record


class TestShapeValidator:

    def test_complete_record_passes(self, mid_range_record):
        ShapeValidator().validate(mid_range_record)

    def test_empty_record_passes(self, empty_record):
        assert ShapeValidator().problems(empty_record) == []

    def test_out_of_range_values(self):
        record = make_record(M1800=9, M1028=-1)
        problems = ShapeValidator().problems(record)
        assert "M1800: 9 above maximum 3" in problems
        assert "M1028: -1 below minimum 0" in problems

    def test_unknown_code(self):
        problems = ShapeValidator().problems(make_record(M1100="mansion"))
        assert problems == ["M1100: unknown code 'mansion'"]

    def test_free_code_must_be_non_empty(self):
        problems = ShapeValidator().problems(make_record(M1020="  "))
        assert problems == ["M1020: expected a code, got '  '"]

    def test_wrong_kinds(self):
        record = make_record(M0090="2026-03-10", M1800="two")
        problems = ShapeValidator().problems(record)
        assert "M0090: expected a date, got str" in problems
        assert "M1800: expected a number, got str" in problems

    def test_validate_collects_every_error(self):
        record = make_record(M1800=9, M1810=9, M1100="mansion")
        with pytest.raises(ValidationError) as exc_info:
            ShapeValidator().validate(record)
        assert len(exc_info.value.errors) == 3
        assert "M1810" in str(exc_info.value)

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_numbers_rejected(self, value):
        problems = ShapeValidator().problems(make_record(M1800=value))
        assert problems == [f"M1800: expected a finite number, got {value}"]
