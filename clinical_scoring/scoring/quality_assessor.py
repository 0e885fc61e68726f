"""
Quality Assessor
clinical_scoring/scoring/quality_assessor.py

Scores the documentation quality of a record on five sub-scores in [0, 1]:

    completeness  items present / items the assessment kind requires
    consistency   1.0 − penalty per contradicting indicator pair, floor 0
    accuracy      share of upstream-checked items that passed (1.0 if none)
    timeliness    linear decay from the completion date (M0090) to today
                  over the staleness window
    compliance    required items present, halved when completion falls
                  outside the kind's timing window

quality = round(100 × Σ sub_score × weight), weights from settings.
"""
from datetime import date
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Tuple

import structlog

from clinical_scoring.core.exceptions import ConfigurationError
from clinical_scoring.models.enumerations import Indicator
from clinical_scoring.models.record import IndicatorRecord
from clinical_scoring.models.results import QualityBreakdown, QualityProfile
from clinical_scoring.scoring.composite_scorer import categorize_score
from clinical_scoring.scoring.tables import (
    COMPLIANCE_RULES,
    CONSISTENCY_RULES,
    WEIGHT_TOLERANCE,
    ConsistencyRule,
    required_items,
)
from clinical_scoring.scoring.utils import clamp_unit, round_half_up, weighted_mean, weights_sum_to_one
from clinical_scoring.services.clock import Today, system_today

logger = structlog.get_logger(__name__)

QUALITY_DIMENSIONS = ("completeness", "consistency", "accuracy", "timeliness", "compliance")

DEFAULT_QUALITY_WEIGHTS: Dict[str, float] = {
    "completeness": 0.25,
    "consistency": 0.20,
    "accuracy": 0.25,
    "timeliness": 0.15,
    "compliance": 0.15,
}


def completeness(record: IndicatorRecord) -> float:
    required = required_items(record.assessment_kind)
    if not required:
        return 1.0
    present = sum(1 for ind in required if record.has(ind))
    return clamp_unit(present / len(required))


def consistency(
    record: IndicatorRecord,
    rules: Tuple[ConsistencyRule, ...] = CONSISTENCY_RULES,
) -> Tuple[float, List[str]]:
    """Score and the names of the rules the record breaks."""
    score = Decimal("1")
    broken = []
    for rule in rules:
        if rule.applies(record):
            score -= Decimal(str(rule.penalty))
            broken.append(rule.name)
    return clamp_unit(max(score, Decimal("0"))), broken


def accuracy(record: IndicatorRecord) -> float:
    if record.validation_report is None:
        return 1.0
    return clamp_unit(record.validation_report.passed_fraction)


def timeliness(record: IndicatorRecord, today: date, staleness_days: int = 30) -> float:
    completed = record.date_value(Indicator.M0090)
    if completed is None:
        return 0.0
    age_days = (today - completed).days
    if age_days <= 0:
        return 1.0
    return clamp_unit(1 - age_days / staleness_days)


def compliance(record: IndicatorRecord) -> float:
    rule = COMPLIANCE_RULES[record.assessment_kind]
    if not rule.required:
        return 1.0
    present = sum(1 for ind in rule.required if record.has(ind))
    score = present / len(rule.required)

    if rule.anchor is not None:
        anchor = record.date_value(rule.anchor)
        completed = record.date_value(Indicator.M0090)
        on_time = False
        if anchor is not None and completed is not None:
            days = (completed - anchor).days
            on_time = days >= rule.min_days and (rule.max_days is None or days <= rule.max_days)
        if not on_time:
            score *= rule.late_factor

    return clamp_unit(score)


class QualityAssessor:
    def __init__(
        self,
        weights: Optional[Mapping[str, float]] = None,
        staleness_days: int = 30,
        today: Optional[Today] = None,
    ):
        weights = dict(weights if weights is not None else DEFAULT_QUALITY_WEIGHTS)
        unknown = set(weights) - set(QUALITY_DIMENSIONS)
        missing = set(QUALITY_DIMENSIONS) - set(weights)
        if unknown or missing:
            raise ConfigurationError(
                f"Quality weights must cover {QUALITY_DIMENSIONS}; "
                f"missing={sorted(missing)} unknown={sorted(unknown)}"
            )
        ok, total = weights_sum_to_one(weights.values(), WEIGHT_TOLERANCE)
        if not ok:
            raise ConfigurationError(f"Quality weights must sum to 1.0, got {total}")

        self.weights = {k: Decimal(str(v)) for k, v in weights.items()}
        self.staleness_days = staleness_days
        self._today = today or system_today

    def assess(self, record: IndicatorRecord) -> QualityProfile:
        consistency_score, inconsistencies = consistency(record)
        breakdown = QualityBreakdown(
            completeness=completeness(record),
            consistency=consistency_score,
            accuracy=accuracy(record),
            timeliness=timeliness(record, self._today(), self.staleness_days),
            compliance=compliance(record),
        )

        values = [Decimal(str(getattr(breakdown, dim))) for dim in QUALITY_DIMENSIONS]
        weights = [self.weights[dim] for dim in QUALITY_DIMENSIONS]
        # Weights sum to 1, so the weighted mean is the weighted sum
        score = round_half_up(weighted_mean(values, weights) * 100)
        category = categorize_score(score)

        logger.info(
            "quality_assessed",
            score=score,
            category=category.value,
            inconsistencies=inconsistencies,
            **breakdown.model_dump(),
        )

        return QualityProfile(
            score=score,
            category=category,
            breakdown=breakdown,
            inconsistencies=inconsistencies,
        )
