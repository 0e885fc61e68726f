"""
Recommendation Engine
clinical_scoring/scoring/recommendation_engine.py

Evaluates a table of rules against the composite, risk and quality results.
Rules are independent; each one that fires contributes a recommendation.

Output order:
    1. duplicates by (category, title) collapse to the highest priority
    2. priority descending (critical > high > medium > low)
    3. evidence strength descending (strong .9 > moderate .7 > expert .6 > weak .5)
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from clinical_scoring.models.enumerations import (
    AlertSeverity,
    EvidenceLevel,
    Priority,
    RiskFactorName,
    RiskLevel,
)
from clinical_scoring.models.results import (
    ActionPlan,
    ActionPlanItem,
    CompositeScore,
    QualityProfile,
    Recommendation,
    RecommendationSummary,
    RiskProfile,
)
from clinical_scoring.scoring.tables import (
    ALERT_CRITICAL_THRESHOLD,
    ALERT_HIGH_THRESHOLD,
    COMPOSITE_CRITICAL_THRESHOLD,
    COMPOSITE_IMPROVEMENT_THRESHOLD,
    QUALITY_RETRAINING_THRESHOLD,
    QUALITY_TARGET_THRESHOLD,
)

logger = structlog.get_logger(__name__)

TIMEFRAMES: Dict[Priority, str] = {
    Priority.CRITICAL: "immediate",
    Priority.HIGH: "within 24h",
    Priority.MEDIUM: "within a week",
    Priority.LOW: "routine",
}


@dataclass(frozen=True)
class RecommendationContext:
    composite: CompositeScore
    risk: RiskProfile
    quality: QualityProfile


@dataclass(frozen=True)
class Payload:
    category: str
    title: str
    description: str
    actions: Tuple[str, ...]
    evidence: EvidenceLevel
    priority: Priority


@dataclass(frozen=True)
class RecommendationRule:
    name: str
    predicate: Callable[[RecommendationContext], bool]
    payload: Callable[[RecommendationContext], Payload]


# ---------------------------------------------------------------------------
# Risk factor bundles
# ---------------------------------------------------------------------------

_FACTOR_BUNDLES: Dict[RiskFactorName, Tuple[str, str, Tuple[str, ...], EvidenceLevel]] = {
    RiskFactorName.FALL: (
        "Implement Fall Prevention Protocol",
        "Elevated fall risk from transfer, ambulation or cognition limits",
        (
            "Implement fall prevention protocol",
            "Consider physical therapy evaluation",
            "Assess home safety modifications",
        ),
        EvidenceLevel.STRONG,
    ),
    RiskFactorName.COGNITIVE: (
        "Provide Cognitive Support",
        "Cognitive impairment affects safety and care plan adherence",
        (
            "Implement cognitive support strategies",
            "Simplify care instructions",
            "Consider neuropsychological evaluation",
        ),
        EvidenceLevel.MODERATE,
    ),
    RiskFactorName.FUNCTIONAL: (
        "Address Functional Decline",
        "ADL and mobility dependence is elevated",
        (
            "Refer for occupational therapy evaluation",
            "Establish ADL assistance plan",
            "Review assistive device needs",
        ),
        EvidenceLevel.STRONG,
    ),
    RiskFactorName.MEDICATION: (
        "Review Medication Management",
        "Patient has difficulty managing medications safely",
        (
            "Review medication regimen with pharmacist",
            "Implement medication management aids",
            "Monitor for adverse drug reactions",
        ),
        EvidenceLevel.STRONG,
    ),
    RiskFactorName.SOCIAL: (
        "Strengthen Support System",
        "Limited caregiver availability or living alone",
        (
            "Refer to social work",
            "Identify community resources",
            "Engage family or caregivers in care plan",
        ),
        EvidenceLevel.EXPERT,
    ),
    RiskFactorName.READMISSION: (
        "Reduce Readmission Risk",
        "Elevated likelihood of hospital readmission",
        (
            "Schedule early follow-up visit",
            "Reinforce symptom management education",
            "Coordinate with primary care provider",
        ),
        EvidenceLevel.MODERATE,
    ),
}


def _factor_rule(factor: RiskFactorName) -> RecommendationRule:
    title, description, actions, evidence = _FACTOR_BUNDLES[factor]

    def predicate(ctx: RecommendationContext) -> bool:
        return ctx.risk.factor_score(factor) >= ALERT_HIGH_THRESHOLD

    def payload(ctx: RecommendationContext) -> Payload:
        score = ctx.risk.factor_score(factor)
        return Payload(
            category="risk_mitigation",
            title=title,
            description=f"{description} (score {score:.2f})",
            actions=actions,
            evidence=evidence,
            priority=Priority.CRITICAL if score >= ALERT_CRITICAL_THRESHOLD else Priority.HIGH,
        )

    return RecommendationRule(name=f"{factor.value}_risk_bundle", predicate=predicate, payload=payload)


def _static(
    category: str,
    title: str,
    description: str,
    actions: Sequence[str],
    evidence: EvidenceLevel,
    priority: Priority,
) -> Callable[[RecommendationContext], Payload]:
    payload = Payload(category, title, description, tuple(actions), evidence, priority)
    return lambda ctx: payload


DEFAULT_RULES: Tuple[RecommendationRule, ...] = tuple(
    _factor_rule(factor) for factor in RiskFactorName
) + (
    RecommendationRule(
        name="high_risk_patient",
        predicate=lambda ctx: ctx.risk.level in (RiskLevel.HIGH, RiskLevel.CRITICAL),
        payload=_static(
            "risk_mitigation",
            "Immediate Attention for High-Risk Patient",
            "Overall risk level requires coordinated intervention",
            ("Schedule interdisciplinary care conference", "Increase visit frequency"),
            EvidenceLevel.STRONG,
            Priority.CRITICAL,
        ),
    ),
    RecommendationRule(
        name="critical_alert_review",
        predicate=lambda ctx: ctx.risk.has_alert(AlertSeverity.CRITICAL),
        payload=_static(
            "clinical_review",
            "Immediate Clinical Review",
            "One or more risk factors reached the critical threshold",
            ("Notify attending clinician", "Reassess patient within 24 hours"),
            EvidenceLevel.EXPERT,
            Priority.CRITICAL,
        ),
    ),
    RecommendationRule(
        name="care_quality_improvement",
        predicate=lambda ctx: ctx.composite.score < COMPOSITE_IMPROVEMENT_THRESHOLD,
        payload=_static(
            "care_quality",
            "Improve Care Outcomes",
            "Composite outcome score is below the good threshold",
            ("Review care plan goals", "Track outcome measures at each visit"),
            EvidenceLevel.MODERATE,
            Priority.MEDIUM,
        ),
    ),
    RecommendationRule(
        name="functional_improvement",
        predicate=lambda ctx: ctx.composite.score < COMPOSITE_CRITICAL_THRESHOLD,
        payload=_static(
            "care_quality",
            "Functional Improvement Program",
            "Composite outcome score is in the critical band",
            (
                "Initiate restorative therapy program",
                "Set measurable functional goals",
                "Reassess functional status in two weeks",
            ),
            EvidenceLevel.STRONG,
            Priority.HIGH,
        ),
    ),
    RecommendationRule(
        name="assessment_quality",
        predicate=lambda ctx: ctx.quality.score < QUALITY_TARGET_THRESHOLD,
        payload=_static(
            "documentation",
            "Improve Assessment Quality",
            "Assessment documentation quality is below target",
            ("Complete missing assessment items", "Resolve inconsistent responses"),
            EvidenceLevel.EXPERT,
            Priority.MEDIUM,
        ),
    ),
    RecommendationRule(
        name="documentation_training",
        predicate=lambda ctx: ctx.quality.score < QUALITY_RETRAINING_THRESHOLD,
        payload=_static(
            "documentation",
            "Documentation Training",
            "Assessment quality is low enough to warrant retraining",
            ("Schedule OASIS documentation training", "Audit next three assessments"),
            EvidenceLevel.WEAK,
            Priority.HIGH,
        ),
    ),
)


def dedupe(recommendations: List[Recommendation]) -> List[Recommendation]:
    """Collapse (category, title) duplicates, keeping the highest priority."""
    best: Dict[Tuple[str, str], Recommendation] = {}
    for rec in recommendations:
        key = (rec.category, rec.title)
        current = best.get(key)
        if current is None or rec.priority.rank > current.priority.rank:
            best[key] = rec
    return list(best.values())


def sort_recommendations(recommendations: List[Recommendation]) -> List[Recommendation]:
    return sorted(
        recommendations,
        key=lambda r: (r.priority.rank, r.evidence.confidence),
        reverse=True,
    )


class RecommendationEngine:
    def __init__(self, rules: Optional[Sequence[RecommendationRule]] = None):
        self.rules = tuple(rules) if rules is not None else DEFAULT_RULES

    def generate(
        self,
        composite: CompositeScore,
        risk: RiskProfile,
        quality: QualityProfile,
    ) -> List[Recommendation]:
        ctx = RecommendationContext(composite=composite, risk=risk, quality=quality)

        fired = []
        for rule in self.rules:
            if not rule.predicate(ctx):
                continue
            p = rule.payload(ctx)
            fired.append(Recommendation(
                category=p.category,
                priority=p.priority,
                title=p.title,
                description=p.description,
                actions=list(p.actions),
                evidence=p.evidence,
                timeframe=TIMEFRAMES[p.priority],
                rule=rule.name,
            ))

        recommendations = sort_recommendations(dedupe(fired))
        logger.info(
            "recommendations_generated",
            fired=len(fired),
            returned=len(recommendations),
            rules=[r.rule for r in recommendations],
        )
        return recommendations

    @staticmethod
    def summarize(recommendations: List[Recommendation]) -> RecommendationSummary:
        by_priority: Dict[Priority, int] = {}
        by_category: Dict[str, int] = {}
        urgent = 0
        for rec in recommendations:
            by_priority[rec.priority] = by_priority.get(rec.priority, 0) + 1
            by_category[rec.category] = by_category.get(rec.category, 0) + 1
            if rec.priority in (Priority.CRITICAL, Priority.HIGH):
                urgent += 1

        if urgent > 3:
            impact = "high"
        elif urgent == 0:
            impact = "low"
        else:
            impact = "medium"

        return RecommendationSummary(
            total=len(recommendations),
            by_priority=by_priority,
            by_category=by_category,
            urgent_actions=urgent,
            estimated_impact=impact,
        )

    @staticmethod
    def action_plan(recommendations: List[Recommendation]) -> ActionPlan:
        """Group by priority: critical now, high this week, medium this month."""
        immediate, short_term, medium_term, long_term = [], [], [], []
        for rec in recommendations:
            if rec.priority == Priority.CRITICAL:
                immediate.append(ActionPlanItem(title=rec.title, priority=rec.priority, actions=rec.actions[:2]))
            elif rec.priority == Priority.HIGH:
                short_term.append(ActionPlanItem(title=rec.title, priority=rec.priority, actions=rec.actions[:3]))
            elif rec.priority == Priority.MEDIUM:
                medium_term.append(ActionPlanItem(title=rec.title, priority=rec.priority, actions=rec.actions))
            else:
                long_term.append(ActionPlanItem(title=rec.title, priority=rec.priority, actions=rec.actions))
        return ActionPlan(
            immediate=immediate,
            short_term=short_term,
            medium_term=medium_term,
            long_term=long_term,
        )
