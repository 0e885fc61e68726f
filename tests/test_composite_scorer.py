"""
Composite Scorer Tests - Clinical Scoring Core
tests/test_composite_scorer.py

Weighted combination, re-normalization over present domains, categories
and weight table validation.
"""
from decimal import Decimal

import pytest

from clinical_scoring.core.exceptions import ConfigurationError
from clinical_scoring.models.enumerations import AssessmentKind, Domain, ScoreCategory
from clinical_scoring.models.results import DomainScore
from clinical_scoring.scoring.composite_scorer import (
    CompositeScorer,
    categorize_score,
    validate_weight_table,
)
from clinical_scoring.scoring.indicator_scorer import IndicatorScorer
from clinical_scoring.scoring.tables import COMPREHENSIVE_WEIGHTS, WEIGHT_TABLES


def domain_score(domain, score, completed=1):
    return DomainScore(
        domain=domain,
        score=score,
        raw_score=100 - score,
        items_completed=completed,
        items_total=2,
        category="test",
    )


HALF_AND_HALF = {Domain.FUNCTIONAL: Decimal("0.5"), Domain.MOBILITY: Decimal("0.5")}


class TestCombine:
    """Σ(score × w) / Σ(w of present domains)."""

    def test_only_present_domain_scores_exactly(self):
        """A alone with weight 0.5 and B absent gives A's score."""
        result = CompositeScorer().combine([domain_score(Domain.FUNCTIONAL, 80)], HALF_AND_HALF)
        assert result.score == 80
        assert result.missing_domains == [Domain.MOBILITY]
        assert result.breakdown[Domain.FUNCTIONAL].contribution == 80.0

    def test_incomplete_domain_counts_as_absent(self):
        scores = [
            domain_score(Domain.FUNCTIONAL, 80),
            domain_score(Domain.MOBILITY, 0, completed=0),
        ]
        assert CompositeScorer().combine(scores, HALF_AND_HALF).score == 80

    def test_weighted_mean(self):
        scores = [domain_score(Domain.FUNCTIONAL, 80), domain_score(Domain.MOBILITY, 61)]
        result = CompositeScorer().combine(scores, HALF_AND_HALF)
        assert result.score == 71  # 70.5 rounds half up
        assert result.category == ScoreCategory.FAIR

    def test_order_independent(self):
        a = domain_score(Domain.FUNCTIONAL, 73)
        b = domain_score(Domain.MOBILITY, 41)
        scorer = CompositeScorer()
        assert scorer.combine([a, b], HALF_AND_HALF) == scorer.combine([b, a], HALF_AND_HALF)

    def test_float_weights_accepted(self):
        weights = {Domain.FUNCTIONAL: 0.25, Domain.MOBILITY: 0.75}
        scores = [domain_score(Domain.FUNCTIONAL, 100), domain_score(Domain.MOBILITY, 60)]
        assert CompositeScorer().combine(scores, weights).score == 70

    def test_no_domains_present(self):
        result = CompositeScorer().combine([], HALF_AND_HALF)
        assert result.score == 0
        assert result.category == ScoreCategory.CRITICAL
        assert set(result.missing_domains) == set(HALF_AND_HALF)

    def test_mid_range_record_is_fair(self, mid_range_record):
        domains = IndicatorScorer().score_all(AssessmentKind.START_OF_CARE, mid_range_record)
        result = CompositeScorer().combine_for(AssessmentKind.START_OF_CARE, domains)
        assert result.score == 79
        assert result.category == ScoreCategory.FAIR

    def test_elevated_record_is_poor(self, elevated_record):
        domains = IndicatorScorer().score_all(AssessmentKind.START_OF_CARE, elevated_record)
        result = CompositeScorer().combine_for(AssessmentKind.START_OF_CARE, domains)
        assert result.score == 63
        assert result.category == ScoreCategory.POOR

    def test_discharge_uses_discharge_weights(self, mid_range_record):
        domains = IndicatorScorer().score_all(AssessmentKind.DISCHARGE, mid_range_record)
        result = CompositeScorer().combine_for(AssessmentKind.DISCHARGE, domains)
        assert result.score == 77


class TestCategories:
    """excellent ≥90, good ≥80, fair ≥70, poor ≥60, critical otherwise."""

    @pytest.mark.parametrize("score,expected", [
        (100, ScoreCategory.EXCELLENT),
        (90, ScoreCategory.EXCELLENT),
        (89, ScoreCategory.GOOD),
        (80, ScoreCategory.GOOD),
        (70, ScoreCategory.FAIR),
        (60, ScoreCategory.POOR),
        (59, ScoreCategory.CRITICAL),
        (0, ScoreCategory.CRITICAL),
    ])
    def test_band_boundaries(self, score, expected):
        assert categorize_score(score) == expected


class TestWeightValidation:
    """Weight tables must sum to 1.0 ± 1e-6 over declared domains."""

    def test_shipped_tables_are_valid(self):
        for kind, weights in WEIGHT_TABLES.items():
            validate_weight_table(kind.value, weights)

    def test_sum_off_by_more_than_tolerance(self):
        weights = dict(COMPREHENSIVE_WEIGHTS)
        weights[Domain.CLINICAL] = Decimal("0.14")
        with pytest.raises(ConfigurationError, match="sum to 1.0"):
            CompositeScorer({AssessmentKind.START_OF_CARE: weights})

    def test_within_tolerance_accepted(self):
        weights = {Domain.FUNCTIONAL: 0.5, Domain.MOBILITY: 0.5000000001}
        validate_weight_table("near", weights)

    def test_undeclared_domain(self):
        with pytest.raises(ConfigurationError, match="undeclared"):
            validate_weight_table("bad", {"wellness": Decimal("1.0")})

    def test_negative_weight(self):
        with pytest.raises(ConfigurationError, match="negative"):
            validate_weight_table(
                "bad",
                {Domain.FUNCTIONAL: Decimal("1.5"), Domain.MOBILITY: Decimal("-0.5")},
            )

    def test_empty_table(self):
        with pytest.raises(ConfigurationError, match="empty"):
            validate_weight_table("bad", {})
