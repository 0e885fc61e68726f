# clinical_scoring/scoring/risk_stratifier.py
"""
Risk Stratifier
---------------
Six factor scores in [0, 1] folded into one composite risk and level.

Formula:
    composite_risk = round(100 × Σ factor_score × factor_weight)

Levels (lower bound on composite risk):
    critical ≥90, high ≥75, moderate ≥50, low ≥25, minimal otherwise

Alerts depend on each factor alone, never on the level:
    factor ≥ 0.8 → critical alert
    factor ≥ 0.6 → high alert

The readmission factor may come from an external predictor. It is resolved
through a fallback chain: the predictor behind the "risk-model" breaker
first, then the static baseline.
"""
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Protocol, Tuple

import structlog

from clinical_scoring.core.exceptions import ConfigurationError
from clinical_scoring.models.enumerations import AlertSeverity, Indicator, RiskFactorName, RiskLevel
from clinical_scoring.models.record import IndicatorRecord
from clinical_scoring.models.results import Alert, MonitoringPlan, RiskFactor, RiskProfile
from clinical_scoring.scoring.tables import (
    ADL_ITEMS,
    ALERT_CRITICAL_THRESHOLD,
    ALERT_HIGH_THRESHOLD,
    COGNITIVE_ITEMS,
    FALL_RISK_POINTS,
    LIVING_SITUATION_POINTS,
    MOBILITY_ITEMS,
    MONITORING_FOCUS,
    MONITORING_THRESHOLD,
    READMISSION_BASELINE_CAP,
    READMISSION_DRIVER_INCREMENT,
    READMISSION_DRIVERS,
    RISK_FACTOR_WEIGHTS,
    RISK_LEVEL_BANDS,
    RISK_LEVEL_FLOOR,
    WEIGHT_TOLERANCE,
)
from clinical_scoring.scoring.utils import band_for, clamp_unit, round_half_up, weights_sum_to_one
from clinical_scoring.services.circuit_breaker import CircuitBreakerRegistry
from clinical_scoring.services.fallback import FallbackChain

logger = structlog.get_logger(__name__)

RISK_MODEL = "risk-model"
MODEL_SOURCE = "model"
BASELINE_SOURCE = "baseline"


class Predictor(Protocol):
    """External readmission model. Returns a probability in [0, 1]."""

    def predict(self, record: IndicatorRecord) -> float: ...


# ---------------------------------------------------------------------------
# Factor functions. Pure: the same record always gives the same score.
# ---------------------------------------------------------------------------

def _mean_burden(record: IndicatorRecord, items, max_value: float) -> float:
    values = [v for v in (record.numeric(i) for i in items) if v is not None]
    if not values:
        return 0.0
    return clamp_unit(sum(values) / (len(values) * max_value))


def fall_risk(record: IndicatorRecord) -> float:
    """Points for transfer, ambulation, toileting and cognition limits."""
    score = Decimal("0")
    for indicator, threshold, points in FALL_RISK_POINTS:
        value = record.numeric(indicator)
        if value is not None and value >= threshold:
            score += Decimal(str(points))
    return clamp_unit(score)


def cognitive_risk(record: IndicatorRecord) -> float:
    return _mean_burden(record, COGNITIVE_ITEMS, 4)


def functional_risk(record: IndicatorRecord) -> float:
    """ADL and mobility items on the ADL 0-3 scale, capped at 1."""
    return _mean_burden(record, ADL_ITEMS + MOBILITY_ITEMS, 3)


def medication_risk(record: IndicatorRecord) -> float:
    """Oral medication management plus cognition, over 6."""
    meds = record.numeric(Indicator.M2020) or 0.0
    cognition = record.numeric(Indicator.M1700) or 0.0
    return clamp_unit((meds + cognition) / 6)


def social_risk(record: IndicatorRecord) -> float:
    """Living situation points plus the assistance gap, over 4."""
    living = record.get(Indicator.M1100)
    points = LIVING_SITUATION_POINTS.get(living, 0) if isinstance(living, str) else 0
    gap = record.numeric(Indicator.M1110) or 0.0
    return clamp_unit((points + gap) / 4)


def readmission_drivers(record: IndicatorRecord) -> List[Indicator]:
    drivers = []
    for indicator, above in READMISSION_DRIVERS:
        value = record.numeric(indicator)
        if value is not None and value > above:
            drivers.append(indicator)
    return drivers


def baseline_readmission_risk(record: IndicatorRecord, baseline: float = 0.15) -> float:
    """
    Static readmission estimate used when no model answers.

    baseline + 0.05 per identified driver, capped at 0.8.
    """
    risk = baseline + READMISSION_DRIVER_INCREMENT * len(readmission_drivers(record))
    return clamp_unit(min(risk, READMISSION_BASELINE_CAP))


# ---------------------------------------------------------------------------
# Bands, alerts, monitoring
# ---------------------------------------------------------------------------

def risk_level_for(composite_risk: float) -> RiskLevel:
    return band_for(composite_risk, RISK_LEVEL_BANDS, RISK_LEVEL_FLOOR)


def _label(name: RiskFactorName) -> str:
    return name.value.replace("_", " ")


def alerts_for(factors: List[RiskFactor]) -> List[Alert]:
    alerts = []
    for factor in factors:
        if factor.score >= ALERT_CRITICAL_THRESHOLD:
            alerts.append(Alert(
                factor=factor.name,
                severity=AlertSeverity.CRITICAL,
                message=f"Critical {_label(factor.name)} risk detected",
                action="Immediate intervention required",
            ))
        elif factor.score >= ALERT_HIGH_THRESHOLD:
            alerts.append(Alert(
                factor=factor.name,
                severity=AlertSeverity.HIGH,
                message=f"High {_label(factor.name)} risk identified",
                action="Enhanced monitoring recommended",
            ))
    return alerts


def monitoring_for(factors: List[RiskFactor]) -> List[MonitoringPlan]:
    plans = []
    for factor in factors:
        if factor.score < MONITORING_THRESHOLD:
            continue
        if factor.score >= ALERT_CRITICAL_THRESHOLD:
            frequency = "daily"
        elif factor.score >= ALERT_HIGH_THRESHOLD:
            frequency = "every 2-3 days"
        else:
            frequency = "weekly"
        plans.append(MonitoringPlan(
            factor=factor.name,
            frequency=frequency,
            focus=MONITORING_FOCUS.get(factor.name, "General monitoring"),
        ))
    return plans


def validate_factor_weights(weights: Mapping[RiskFactorName, Decimal]) -> None:
    missing = [f.value for f in RiskFactorName if f not in weights]
    if missing:
        raise ConfigurationError(f"Risk factor weights missing factors: {missing}")
    ok, total = weights_sum_to_one(weights.values(), WEIGHT_TOLERANCE)
    if not ok:
        raise ConfigurationError(f"Risk factor weights must sum to 1.0, got {total}")


class RiskStratifier:
    """Assess a record's risk profile."""

    def __init__(
        self,
        breakers: CircuitBreakerRegistry,
        predictor: Optional[Predictor] = None,
        baseline_risk: float = 0.15,
        timeout: Optional[float] = 5.0,
        weights: Optional[Mapping[RiskFactorName, Decimal]] = None,
    ):
        self.weights = {
            name: Decimal(str(w))
            for name, w in (weights if weights is not None else RISK_FACTOR_WEIGHTS).items()
        }
        validate_factor_weights(self.weights)

        self.breakers = breakers
        self.predictor = predictor
        self.baseline_risk = baseline_risk

        providers = []
        if predictor is not None:
            providers.append((RISK_MODEL, self._predict))
        self._readmission = FallbackChain(
            providers=providers,
            default=lambda record: baseline_readmission_risk(record, self.baseline_risk),
            breakers=breakers,
            timeout=timeout,
            default_source=BASELINE_SOURCE,
        )

    def _predict(self, record: IndicatorRecord) -> float:
        value = self.predictor.predict(record)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"predictor returned non-numeric value {value!r}")
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"predictor returned probability outside [0, 1]: {value}")
        return float(value)

    def readmission_risk(self, record: IndicatorRecord) -> Tuple[float, str]:
        """Readmission factor and the source that produced it."""
        value, source = self._readmission.resolve(record)
        return clamp_unit(value), (MODEL_SOURCE if source == RISK_MODEL else BASELINE_SOURCE)

    def factor_scores(self, record: IndicatorRecord, readmission: float) -> Dict[RiskFactorName, float]:
        return {
            RiskFactorName.FALL: fall_risk(record),
            RiskFactorName.COGNITIVE: cognitive_risk(record),
            RiskFactorName.FUNCTIONAL: functional_risk(record),
            RiskFactorName.MEDICATION: medication_risk(record),
            RiskFactorName.SOCIAL: social_risk(record),
            RiskFactorName.READMISSION: readmission,
        }

    def profile(
        self,
        scores: Mapping[RiskFactorName, float],
        readmission_source: str = BASELINE_SOURCE,
    ) -> RiskProfile:
        """Build the profile from precomputed factor scores."""
        factors = [RiskFactor(name=name, score=clamp_unit(scores.get(name, 0.0))) for name in RiskFactorName]

        total = sum(
            (Decimal(str(f.score)) * self.weights[f.name] for f in factors),
            Decimal("0"),
        )
        composite = round_half_up(total * 100)
        composite = max(0, min(100, composite))

        return RiskProfile(
            composite_risk=composite,
            level=risk_level_for(composite),
            factors=factors,
            alerts=alerts_for(factors),
            monitoring=monitoring_for(factors),
            readmission_source=readmission_source,
        )

    def assess(self, record: IndicatorRecord) -> RiskProfile:
        """
        Args:
            record: Validated indicator record.

        Returns:
            RiskProfile. Never raises for an unavailable predictor; the
            readmission factor falls back to the baseline instead.
        """
        readmission, source = self.readmission_risk(record)
        profile = self.profile(self.factor_scores(record, readmission), source)

        logger.info(
            "risk_assessed",
            composite_risk=profile.composite_risk,
            level=profile.level.value,
            factors={f.name.value: f.score for f in profile.factors},
            alerts=len(profile.alerts),
            readmission_source=source,
        )
        return profile
