import json
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from clinical_scoring.models.enumerations import AssessmentKind, Indicator

IndicatorValue = Union[int, float, str, date]


class ValidationReport(BaseModel):
    """
    Report produced by the upstream range/type validator.

    The core does not re-validate ranges; accuracy is read from here.
    """

    model_config = ConfigDict(frozen=True)

    checked: int = Field(
        ...,
        ge=0,
        description="Number of indicators the upstream validator checked"
    )

    failed: List[Indicator] = Field(
        default_factory=list,
        description="Indicators that failed range/type validation"
    )

    @model_validator(mode="after")
    def validate_failed_count(self):
        if len(self.failed) > self.checked:
            raise ValueError("failed indicators cannot exceed checked count")
        return self

    @property
    def passed_fraction(self) -> float:
        if self.checked == 0:
            return 1.0
        return (self.checked - len(self.failed)) / self.checked


class IndicatorRecord(BaseModel):
    """
    A validated bag of typed clinical indicators for one assessment.

    Absence of an indicator is expressed by the key not being present;
    ``get`` returns None for it.
    """

    model_config = ConfigDict(frozen=True)

    assessment_kind: AssessmentKind = Field(
        ...,
        description="Selects the domain and weight tables that apply"
    )

    values: Dict[Indicator, IndicatorValue] = Field(
        default_factory=dict,
        description="Indicator values keyed by indicator identifier"
    )

    validation_report: Optional[ValidationReport] = Field(
        default=None,
        description="Upstream validator report, used for the accuracy sub-score"
    )

    def get(self, indicator: Indicator) -> Optional[IndicatorValue]:
        return self.values.get(indicator)

    def has(self, indicator: Indicator) -> bool:
        value = self.values.get(indicator)
        return value is not None and value != ""

    def numeric(self, indicator: Indicator) -> Optional[float]:
        """Numeric value of an indicator, or None when absent or non-numeric."""
        value = self.values.get(indicator)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)

    def date_value(self, indicator: Indicator) -> Optional[date]:
        value = self.values.get(indicator)
        if isinstance(value, datetime):
            return value.date()
        return value if isinstance(value, date) else None

    def canonical_payload(self) -> Dict[str, Any]:
        """Stable, order-independent representation of the record."""
        values = {
            ind.value: (val.isoformat() if isinstance(val, date) else val)
            for ind, val in self.values.items()
        }
        report = None
        if self.validation_report is not None:
            report = {
                "checked": self.validation_report.checked,
                "failed": sorted(i.value for i in self.validation_report.failed),
            }
        return {
            "assessment_kind": self.assessment_kind.value,
            "values": dict(sorted(values.items())),
            "validation_report": report,
        }

    def canonical_json(self) -> str:
        return json.dumps(self.canonical_payload(), sort_keys=True, separators=(",", ":"))
