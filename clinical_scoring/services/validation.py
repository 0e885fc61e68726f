"""
Record shape validation.

Checks each present value against its declared kind and range. Every
problem is collected so the caller sees them all at once.
"""
import math
from datetime import date
from typing import Dict, List, Optional, Protocol

from clinical_scoring.core.exceptions import ValidationError
from clinical_scoring.models.enumerations import AssessmentKind, Indicator, ValueKind
from clinical_scoring.models.record import IndicatorRecord
from clinical_scoring.scoring.tables import INDICATOR_SPECS, IndicatorSpec


class RecordValidator(Protocol):
    def validate(self, record: IndicatorRecord) -> None:
        """Raise ValidationError if the record cannot be scored."""
        ...


class ShapeValidator:
    def __init__(self, specs: Optional[Dict[Indicator, IndicatorSpec]] = None):
        self.specs = specs if specs is not None else INDICATOR_SPECS

    def problems(self, record: IndicatorRecord) -> List[str]:
        errors: List[str] = []

        if not isinstance(record.assessment_kind, AssessmentKind):
            errors.append(f"unknown assessment kind: {record.assessment_kind!r}")

        for indicator, value in record.values.items():
            if value is None:
                continue
            spec = self.specs.get(indicator)
            if spec is None:
                errors.append(f"{indicator.value}: undeclared indicator")
                continue
            error = self._check(spec, value)
            if error:
                errors.append(f"{indicator.value}: {error}")

        return errors

    def _check(self, spec: IndicatorSpec, value) -> Optional[str]:
        if spec.kind == ValueKind.DATE:
            if not isinstance(value, date):
                return f"expected a date, got {type(value).__name__}"
            return None

        if spec.kind == ValueKind.ENUMERATED:
            if not isinstance(value, str) or not value.strip():
                return f"expected a code, got {value!r}"
            if spec.codes is not None and value not in spec.codes:
                return f"unknown code {value!r}"
            return None

        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return f"expected a number, got {type(value).__name__}"
        if not math.isfinite(value):
            return f"expected a finite number, got {value}"
        if spec.min_value is not None and value < spec.min_value:
            return f"{value} below minimum {spec.min_value:g}"
        if spec.max_value is not None and value > spec.max_value:
            return f"{value} above maximum {spec.max_value:g}"
        return None

    def validate(self, record: IndicatorRecord) -> None:
        errors = self.problems(record)
        if errors:
            raise ValidationError(errors)
