"""
Scoring Tables
clinical_scoring/scoring/tables.py

Every threshold, weight and item list the scorers use lives here. Adding a
domain or assessment kind means adding a row, not touching scorer code.

Composite weights per assessment kind (each table sums to 1.0):

    Domain       | comprehensive | discharge
    ─────────────┼───────────────┼──────────
    functional   |     0.30      |   0.35
    mobility     |     0.15      |   0.25
    cognitive    |     0.25      |   0.20
    behavioral   |     0.15      |   0.10
    clinical     |     0.15      |   0.10

Risk factor weights (sum 1.0):
    fall 0.25, cognitive 0.15, functional 0.20,
    medication 0.15, social 0.10, readmission 0.15
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, FrozenSet, Optional, Tuple

from clinical_scoring.models.enumerations import (
    AssessmentKind,
    Domain,
    Indicator,
    RiskFactorName,
    RiskLevel,
    ScoreCategory,
    ValueKind,
)
from clinical_scoring.models.record import IndicatorRecord

# ---------------------------------------------------------------------------
# Indicator registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IndicatorSpec:
    """Declared value kind and range of one indicator."""
    indicator: Indicator
    kind: ValueKind
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    codes: Optional[FrozenSet[str]] = None   # None = any non-empty code


def _numeric(ind: Indicator, lo: float, hi: float) -> IndicatorSpec:
    return IndicatorSpec(ind, ValueKind.NUMERIC, lo, hi)


def _date(ind: Indicator) -> IndicatorSpec:
    return IndicatorSpec(ind, ValueKind.DATE)


def _code(ind: Indicator, codes: Optional[FrozenSet[str]] = None) -> IndicatorSpec:
    return IndicatorSpec(ind, ValueKind.ENUMERATED, codes=codes)


PRIOR_INPATIENT_CODES: FrozenSet[str] = frozenset(
    ["1", "2", "3", "4", "5", "6", "7", "8", "9", "NA"]
)

# Living situation → social risk points
LIVING_SITUATION_POINTS: Dict[str, int] = {
    "lives_alone": 2,
    "with_others": 1,
    "congregate": 0,
}

INDICATOR_SPECS: Dict[Indicator, IndicatorSpec] = {
    spec.indicator: spec
    for spec in (
        _date(Indicator.M0030),
        _date(Indicator.M0032),
        _date(Indicator.M0090),
        _code(Indicator.M1000, PRIOR_INPATIENT_CODES),
        _code(Indicator.M1020),
        _numeric(Indicator.M1028, 0, 20),
        _code(Indicator.M1100, frozenset(LIVING_SITUATION_POINTS)),
        _numeric(Indicator.M1110, 0, 2),
        _numeric(Indicator.M1700, 0, 4),
        _numeric(Indicator.M1710, 0, 4),
        _numeric(Indicator.M1720, 0, 3),
        _numeric(Indicator.M1730, 0, 3),
        _numeric(Indicator.M1740, 0, 7),
        _numeric(Indicator.M1800, 0, 3),
        _numeric(Indicator.M1810, 0, 3),
        _numeric(Indicator.M1820, 0, 3),
        _numeric(Indicator.M1830, 0, 3),
        _numeric(Indicator.M1840, 0, 3),
        _numeric(Indicator.M1845, 0, 3),
        _numeric(Indicator.M1850, 0, 5),
        _numeric(Indicator.M1860, 0, 5),
        _numeric(Indicator.M2020, 0, 3),
        _numeric(Indicator.M2030, 0, 3),
    )
}

# ---------------------------------------------------------------------------
# Domain tables
# ---------------------------------------------------------------------------

BURDEN = "burden"          # higher raw value = more dependent; score is inverted
CAPABILITY = "capability"  # higher raw value = better

SUM = "sum"                # Σ values / (items_present × max_item_value)
PRESENCE = "presence"      # items_present / items_total


@dataclass(frozen=True)
class DomainTable:
    """How one domain turns indicator values into a 0-100 score."""
    domain: Domain
    indicators: Tuple[Indicator, ...]
    max_item_value: float
    bands: Tuple[Tuple[float, str], ...]   # (lower bound on score, label), highest first
    lowest_band: str
    polarity: str = BURDEN
    method: str = SUM


ADL_ITEMS: Tuple[Indicator, ...] = (
    Indicator.M1800,
    Indicator.M1810,
    Indicator.M1820,
    Indicator.M1830,
    Indicator.M1840,
    Indicator.M1845,
)
MOBILITY_ITEMS: Tuple[Indicator, ...] = (Indicator.M1850, Indicator.M1860)
COGNITIVE_ITEMS: Tuple[Indicator, ...] = (Indicator.M1700, Indicator.M1710, Indicator.M1720)
BEHAVIORAL_ITEMS: Tuple[Indicator, ...] = (Indicator.M1730, Indicator.M1740)
CLINICAL_ITEMS: Tuple[Indicator, ...] = (Indicator.M1000, Indicator.M1020, Indicator.M1028)

_DEPENDENCY_BANDS = ((75, "independent"), (50, "minimal_assistance"), (25, "moderate_assistance"))

DOMAIN_TABLES: Dict[Domain, DomainTable] = {
    Domain.FUNCTIONAL: DomainTable(
        domain=Domain.FUNCTIONAL,
        indicators=ADL_ITEMS,
        max_item_value=3,
        bands=_DEPENDENCY_BANDS,
        lowest_band="dependent",
    ),
    Domain.MOBILITY: DomainTable(
        domain=Domain.MOBILITY,
        indicators=MOBILITY_ITEMS,
        max_item_value=5,
        bands=_DEPENDENCY_BANDS,
        lowest_band="dependent",
    ),
    Domain.COGNITIVE: DomainTable(
        domain=Domain.COGNITIVE,
        indicators=COGNITIVE_ITEMS,
        max_item_value=4,
        bands=((75, "alert_oriented"), (50, "mild_impairment"), (25, "moderate_impairment")),
        lowest_band="severe_impairment",
    ),
    Domain.BEHAVIORAL: DomainTable(
        domain=Domain.BEHAVIORAL,
        indicators=BEHAVIORAL_ITEMS,
        max_item_value=7,
        bands=((75, "no_issues"), (50, "mild_issues"), (25, "moderate_issues")),
        lowest_band="significant_issues",
    ),
    Domain.CLINICAL: DomainTable(
        domain=Domain.CLINICAL,
        indicators=CLINICAL_ITEMS,
        max_item_value=1,
        bands=((90, "excellent"), (75, "good"), (60, "fair")),
        lowest_band="poor",
        polarity=CAPABILITY,
        method=PRESENCE,
    ),
}

INCOMPLETE_CATEGORY = "incomplete"

# ---------------------------------------------------------------------------
# Composite weights per assessment kind
# ---------------------------------------------------------------------------

COMPREHENSIVE_WEIGHTS: Dict[Domain, Decimal] = {
    Domain.FUNCTIONAL: Decimal("0.30"),
    Domain.MOBILITY:   Decimal("0.15"),
    Domain.COGNITIVE:  Decimal("0.25"),
    Domain.BEHAVIORAL: Decimal("0.15"),
    Domain.CLINICAL:   Decimal("0.15"),
}

DISCHARGE_WEIGHTS: Dict[Domain, Decimal] = {
    Domain.FUNCTIONAL: Decimal("0.35"),
    Domain.MOBILITY:   Decimal("0.25"),
    Domain.COGNITIVE:  Decimal("0.20"),
    Domain.BEHAVIORAL: Decimal("0.10"),
    Domain.CLINICAL:   Decimal("0.10"),
}

WEIGHT_TABLES: Dict[AssessmentKind, Dict[Domain, Decimal]] = {
    AssessmentKind.START_OF_CARE: COMPREHENSIVE_WEIGHTS,
    AssessmentKind.RESUMPTION_OF_CARE: COMPREHENSIVE_WEIGHTS,
    AssessmentKind.FOLLOW_UP: COMPREHENSIVE_WEIGHTS,
    AssessmentKind.TRANSFER: DISCHARGE_WEIGHTS,
    AssessmentKind.DISCHARGE: DISCHARGE_WEIGHTS,
}

COMPOSITE_BANDS: Tuple[Tuple[float, ScoreCategory], ...] = (
    (90, ScoreCategory.EXCELLENT),
    (80, ScoreCategory.GOOD),
    (70, ScoreCategory.FAIR),
    (60, ScoreCategory.POOR),
)
COMPOSITE_FLOOR = ScoreCategory.CRITICAL

WEIGHT_TOLERANCE = 1e-6

# ---------------------------------------------------------------------------
# Risk stratification
# ---------------------------------------------------------------------------

RISK_FACTOR_WEIGHTS: Dict[RiskFactorName, Decimal] = {
    RiskFactorName.FALL:        Decimal("0.25"),
    RiskFactorName.COGNITIVE:   Decimal("0.15"),
    RiskFactorName.FUNCTIONAL:  Decimal("0.20"),
    RiskFactorName.MEDICATION:  Decimal("0.15"),
    RiskFactorName.SOCIAL:      Decimal("0.10"),
    RiskFactorName.READMISSION: Decimal("0.15"),
}

# Lower bound on composite risk → level; below 25 is minimal
RISK_LEVEL_BANDS: Tuple[Tuple[float, RiskLevel], ...] = (
    (90, RiskLevel.CRITICAL),
    (75, RiskLevel.HIGH),
    (50, RiskLevel.MODERATE),
    (25, RiskLevel.LOW),
)
RISK_LEVEL_FLOOR = RiskLevel.MINIMAL

ALERT_HIGH_THRESHOLD = 0.6
ALERT_CRITICAL_THRESHOLD = 0.8

# Recommendation rule cut-offs on the 0-100 composite and quality scores
COMPOSITE_IMPROVEMENT_THRESHOLD = 80   # below "good"
COMPOSITE_CRITICAL_THRESHOLD = 60      # below "poor"
QUALITY_TARGET_THRESHOLD = 80
QUALITY_RETRAINING_THRESHOLD = 60

MONITORING_THRESHOLD = 0.4

# (indicator, threshold, points): points added when value >= threshold
FALL_RISK_POINTS: Tuple[Tuple[Indicator, float, float], ...] = (
    (Indicator.M1850, 3, 0.30),   # transferring
    (Indicator.M1860, 3, 0.30),   # ambulation
    (Indicator.M1840, 2, 0.20),   # toilet transferring
    (Indicator.M1700, 2, 0.20),   # cognition
)

# Readmission drivers for the static baseline: (indicator, value must exceed)
READMISSION_DRIVERS: Tuple[Tuple[Indicator, float], ...] = (
    (Indicator.M1700, 2),
    (Indicator.M1850, 3),
    (Indicator.M2020, 1),
)
READMISSION_DRIVER_INCREMENT = 0.05
READMISSION_BASELINE_CAP = 0.8

MONITORING_FOCUS: Dict[RiskFactorName, str] = {
    RiskFactorName.FALL: "Mobility, balance, environmental hazards",
    RiskFactorName.COGNITIVE: "Orientation, memory, decision-making",
    RiskFactorName.FUNCTIONAL: "ADL performance, independence level",
    RiskFactorName.MEDICATION: "Adherence, side effects, interactions",
    RiskFactorName.SOCIAL: "Support system, resource availability",
    RiskFactorName.READMISSION: "Symptom management, care plan adherence",
}

# ---------------------------------------------------------------------------
# Quality assessment
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConsistencyRule:
    """A logical contradiction between paired indicators."""
    name: str
    description: str
    applies: Callable[[IndicatorRecord], bool]
    penalty: float = 0.2


def _eq(record: IndicatorRecord, ind: Indicator, value: float) -> bool:
    v = record.numeric(ind)
    return v is not None and v == value


def _ge(record: IndicatorRecord, ind: Indicator, value: float) -> bool:
    v = record.numeric(ind)
    return v is not None and v >= value


CONSISTENCY_RULES: Tuple[ConsistencyRule, ...] = (
    ConsistencyRule(
        name="bedfast_independent_ambulation",
        description="Bedfast for transfers but fully independent in ambulation",
        applies=lambda r: _eq(r, Indicator.M1850, 5) and _eq(r, Indicator.M1860, 0),
    ),
    ConsistencyRule(
        name="chairfast_independent_toilet_transfer",
        description="Chairfast or bedfast but independent toilet transferring",
        applies=lambda r: _ge(r, Indicator.M1860, 4) and _eq(r, Indicator.M1840, 0),
    ),
    ConsistencyRule(
        name="unable_to_transfer_independent_bathing",
        description="Unable to transfer but bathes independently",
        applies=lambda r: _ge(r, Indicator.M1850, 4) and _eq(r, Indicator.M1830, 0),
    ),
    ConsistencyRule(
        name="alert_but_constantly_confused",
        description="Alert and oriented but confused constantly",
        applies=lambda r: _eq(r, Indicator.M1700, 0) and _ge(r, Indicator.M1710, 3),
    ),
)


@dataclass(frozen=True)
class ComplianceRule:
    """Required items and completion timing for one assessment kind."""
    required: Tuple[Indicator, ...]
    anchor: Optional[Indicator] = None    # date the timing window starts from
    min_days: int = 0
    max_days: Optional[int] = None
    late_factor: float = 0.5              # multiplier when timing is missed


COMPLIANCE_RULES: Dict[AssessmentKind, ComplianceRule] = {
    AssessmentKind.START_OF_CARE: ComplianceRule(
        required=(Indicator.M0030, Indicator.M0090, Indicator.M1020),
        anchor=Indicator.M0030,
        max_days=5,
    ),
    AssessmentKind.RESUMPTION_OF_CARE: ComplianceRule(
        required=(Indicator.M0032, Indicator.M0090, Indicator.M1020),
        anchor=Indicator.M0032,
        max_days=2,
    ),
    AssessmentKind.FOLLOW_UP: ComplianceRule(
        required=(Indicator.M0030, Indicator.M0090, Indicator.M1020),
        anchor=Indicator.M0030,
        min_days=55,
        max_days=65,
    ),
    AssessmentKind.TRANSFER: ComplianceRule(required=(Indicator.M0090, Indicator.M1020)),
    AssessmentKind.DISCHARGE: ComplianceRule(required=(Indicator.M0090, Indicator.M1020)),
}


def domains_for(kind: AssessmentKind) -> Tuple[Domain, ...]:
    """Domains declared by an assessment kind, in table order."""
    return tuple(WEIGHT_TABLES[kind].keys())


def required_items(kind: AssessmentKind) -> Tuple[Indicator, ...]:
    """Every indicator a complete record of this kind carries."""
    items = []
    for domain in domains_for(kind):
        items.extend(DOMAIN_TABLES[domain].indicators)
    for ind in COMPLIANCE_RULES[kind].required:
        if ind not in items:
            items.append(ind)
    return tuple(items)
