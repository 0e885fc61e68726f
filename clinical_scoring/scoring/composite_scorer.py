"""
Composite Scorer
clinical_scoring/scoring/composite_scorer.py

Combines domain scores into one composite score and category.

Formula:
    composite = Σ(domain_score × weight) / Σ(weight of present domains)

Absent domains drop out of both sums, so an incomplete record is not
scored down for what it lacks. A record with only domain A present scores
exactly A's score.
"""
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

import structlog

from clinical_scoring.core.exceptions import ConfigurationError
from clinical_scoring.models.enumerations import AssessmentKind, Domain, ScoreCategory
from clinical_scoring.models.results import CompositeScore, DomainContribution, DomainScore
from clinical_scoring.scoring.tables import (
    COMPOSITE_BANDS,
    COMPOSITE_FLOOR,
    DOMAIN_TABLES,
    WEIGHT_TABLES,
    WEIGHT_TOLERANCE,
)
from clinical_scoring.scoring.utils import band_for, round_half_up, weights_sum_to_one

logger = structlog.get_logger(__name__)


def categorize_score(score: float) -> ScoreCategory:
    """Five-band category shared by composite and quality scores."""
    return band_for(score, COMPOSITE_BANDS, COMPOSITE_FLOOR)


def validate_weight_table(name: str, weights: Mapping[Domain, Decimal]) -> None:
    """Raise ConfigurationError unless ``weights`` is a usable weight table."""
    if not weights:
        raise ConfigurationError(f"Weight table {name} is empty")
    undeclared = [d for d in weights if d not in DOMAIN_TABLES]
    if undeclared:
        raise ConfigurationError(
            f"Weight table {name} references undeclared domains: {undeclared}"
        )
    negative = [d.value for d, w in weights.items() if w < 0]
    if negative:
        raise ConfigurationError(f"Weight table {name} has negative weights: {negative}")
    ok, total = weights_sum_to_one(weights.values(), WEIGHT_TOLERANCE)
    if not ok:
        raise ConfigurationError(f"Weight table {name} must sum to 1.0, got {total}")


def validate_weight_tables(tables: Mapping[AssessmentKind, Mapping[Domain, Decimal]]) -> None:
    for kind, weights in tables.items():
        validate_weight_table(kind.value, weights)


class CompositeScorer:
    """Combine domain scores via a weight table."""

    def __init__(self, weight_tables: Optional[Mapping[AssessmentKind, Mapping[Domain, Decimal]]] = None):
        self.weight_tables = weight_tables if weight_tables is not None else WEIGHT_TABLES
        validate_weight_tables(self.weight_tables)

    def combine(
        self,
        domain_scores: Iterable[DomainScore],
        weight_table: Mapping[Domain, Decimal],
    ) -> CompositeScore:
        """
        Args:
            domain_scores: Scores for any subset of the table's domains. Scores
                with no completed items count as absent.
            weight_table: Domain → weight, summing to 1.0.

        Returns:
            CompositeScore with per-domain breakdown and the list of domains
            that were absent.

        Examples:
            >>> scorer = CompositeScorer()
            >>> a = DomainScore(domain=Domain.FUNCTIONAL, score=80, raw_score=20,
            ...                 items_completed=6, items_total=6, category="independent")
            >>> scorer.combine([a], {Domain.FUNCTIONAL: Decimal("0.5"),
            ...                      Domain.MOBILITY: Decimal("0.5")}).score
            80
        """
        weight_table = {d: Decimal(str(w)) for d, w in weight_table.items()}
        present: Dict[Domain, DomainScore] = {
            s.domain: s for s in domain_scores if s.is_present and s.domain in weight_table
        }

        total_weight = sum((weight_table[d] for d in present), Decimal("0"))
        missing = [d for d in weight_table if d not in present]

        if total_weight == 0:
            logger.warning("composite_no_domains_present", missing=[d.value for d in missing])
            return CompositeScore(
                score=0,
                category=categorize_score(0),
                breakdown={},
                missing_domains=missing,
            )

        weighted_sum = Decimal("0")
        breakdown: Dict[Domain, DomainContribution] = {}
        # Iterate in table order so the result is independent of input order
        for domain in weight_table:
            if domain not in present:
                continue
            weight = weight_table[domain]
            term = Decimal(present[domain].score) * weight
            weighted_sum += term
            breakdown[domain] = DomainContribution(
                score=present[domain].score,
                weight=float(weight),
                contribution=float((term / total_weight).quantize(Decimal("0.01"))),
            )

        score = round_half_up(weighted_sum / total_weight)
        category = categorize_score(score)

        logger.info(
            "composite_calculated",
            score=score,
            category=category.value,
            present=[d.value for d in present],
            missing=[d.value for d in missing],
            total_weight=float(total_weight),
        )

        return CompositeScore(
            score=score,
            category=category,
            breakdown=breakdown,
            missing_domains=missing,
        )

    def combine_for(self, kind: AssessmentKind, domain_scores: Iterable[DomainScore]) -> CompositeScore:
        return self.combine(domain_scores, self.weight_tables[kind])
