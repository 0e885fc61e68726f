"""
Orchestrator Tests - Clinical Scoring Core
tests/test_orchestrator.py

End-to-end evaluation: admission, validation, caching, degraded risk
scoring, cancellation, events and the resilience snapshot.
"""
import threading
import time
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import redis

from clinical_scoring.core.exceptions import (
    ConfigurationError,
    EvaluationCancelled,
    RateLimitExceeded,
    ValidationError,
)
from clinical_scoring.models.enumerations import (
    AlertSeverity,
    CircuitStatus,
    Domain,
    RiskFactorName,
    RiskLevel,
    ScoreCategory,
)
from clinical_scoring.models.results import EvaluationResult
from clinical_scoring.scoring.orchestrator import build_orchestrator
from clinical_scoring.scoring.risk_stratifier import RISK_MODEL
from clinical_scoring.scoring import tables
from clinical_scoring.services.cache import ScoringCache
from clinical_scoring.services.events import EVALUATION_COMPLETED
from tests.factories import make_record


@pytest.fixture
def model_orchestrator(test_settings, clock, today, memory_cache):
    """Orchestrator with an external readmission predictor."""
    predictor = MagicMock()
    predictor.predict.return_value = 0.35
    orch = build_orchestrator(
        settings=test_settings,
        predictor=predictor,
        clock=clock,
        today=today,
        cache=memory_cache,
    )
    orch.predictor = predictor
    yield orch
    orch.close()


class TestEvaluate:
    """Full pipeline results."""

    def test_mid_range_record(self, orchestrator, mid_range_record):
        result = orchestrator.evaluate(mid_range_record, "clinician-1")
        assert isinstance(result, EvaluationResult)
        assert [d.domain for d in result.domains] == list(Domain)
        assert result.composite.category in (ScoreCategory.FAIR, ScoreCategory.POOR)
        assert result.quality.score == 100

    def test_elevated_record_scenario(self, orchestrator, elevated_record):
        """Poor composite, moderate risk, a high alert and its bundle."""
        result = orchestrator.evaluate(elevated_record, "clinician-1")

        assert result.composite.category in (ScoreCategory.FAIR, ScoreCategory.POOR)
        assert result.risk.level == RiskLevel.MODERATE
        assert sum(1 for f in result.risk.factors if f.score >= 0.6) == 2
        assert result.risk.has_alert(AlertSeverity.HIGH)

        high = [a.factor for a in result.risk.alerts if a.severity == AlertSeverity.HIGH]
        rules = [r.rule for r in result.recommendations]
        assert result.recommendations
        for factor in high:
            assert f"{factor.value}_risk_bundle" in rules

        assert result.summary.total == len(result.recommendations)
        assert result.action_plan.immediate

    def test_invalid_record_fails_fast(self, orchestrator, memory_cache):
        record = make_record(M1800=9, M1100="mansion")
        with pytest.raises(ValidationError) as exc_info:
            orchestrator.evaluate(record, "clinician-1")
        assert len(exc_info.value.errors) == 2
        assert memory_cache.stats().misses == 0

    @pytest.mark.parametrize("value", [float("nan"), float("inf")])
    def test_non_finite_value_is_a_validation_error(self, orchestrator, value):
        with pytest.raises(ValidationError) as exc_info:
            orchestrator.evaluate(make_record(M1800=value), "clinician-1")
        assert exc_info.value.errors == [f"M1800: expected a finite number, got {value}"]

    def test_bad_table_fails_at_startup(self, test_settings, monkeypatch):
        broken = dict(tables.COMPREHENSIVE_WEIGHTS)
        broken[Domain.CLINICAL] = Decimal("0.5")
        monkeypatch.setitem(tables.WEIGHT_TABLES, tables.AssessmentKind.START_OF_CARE, broken)
        with pytest.raises(ConfigurationError):
            build_orchestrator(settings=test_settings)


class TestRateLimiting:
    """Admission per actor through the orchestrator."""

    def test_101st_call_in_window_is_rejected(self, orchestrator, mid_range_record):
        for _ in range(100):
            orchestrator.evaluate(mid_range_record, "clinician-1")
        with pytest.raises(RateLimitExceeded) as exc_info:
            orchestrator.evaluate(mid_range_record, "clinician-1")
        assert exc_info.value.retry_after == pytest.approx(60.0)

    def test_other_actors_unaffected(self, orchestrator, mid_range_record):
        for _ in range(100):
            orchestrator.evaluate(mid_range_record, "clinician-1")
        orchestrator.evaluate(mid_range_record, "clinician-2")

    def test_admitted_again_after_window(self, orchestrator, mid_range_record, clock):
        for _ in range(100):
            orchestrator.evaluate(mid_range_record, "clinician-1")
        clock.advance(61)
        orchestrator.evaluate(mid_range_record, "clinician-1")


class TestDegradedRisk:
    """The risk-model dependency never fails an evaluation."""

    def test_predictor_used_when_healthy(self, model_orchestrator, mid_range_record):
        result = model_orchestrator.evaluate(mid_range_record, "clinician-1")
        assert result.risk.readmission_source == "model"
        assert result.risk.factor_score(RiskFactorName.READMISSION) == 0.35

    def test_open_breaker_falls_back_to_baseline(self, model_orchestrator, mid_range_record):
        """Three reported failures open the breaker; the fourth call still completes."""
        for _ in range(3):
            model_orchestrator.report_dependency_outcome(RISK_MODEL, False)

        result = model_orchestrator.evaluate(mid_range_record, "clinician-1")

        assert model_orchestrator.breakers.status(RISK_MODEL) == CircuitStatus.OPEN
        assert result.risk.readmission_source == "baseline"
        assert result.risk.factor_score(RiskFactorName.READMISSION) == 0.15
        model_orchestrator.predictor.predict.assert_not_called()

    def test_failing_predictor_opens_breaker(self, model_orchestrator, clock):
        model_orchestrator.predictor.predict.side_effect = ConnectionError("offline")
        for i in range(4):
            # distinct records so every call reaches the risk step
            result = model_orchestrator.evaluate(make_record(M1028=i), "clinician-1")
            assert result.risk.readmission_source == "baseline"

        assert model_orchestrator.predictor.predict.call_count == 3
        assert model_orchestrator.breakers.status(RISK_MODEL) == CircuitStatus.OPEN

    def test_breaker_recovers_after_reset_timeout(self, model_orchestrator, clock):
        for _ in range(3):
            model_orchestrator.report_dependency_outcome(RISK_MODEL, False)
        clock.advance(60)

        result = model_orchestrator.evaluate(make_record(M1028=7), "clinician-1")
        assert result.risk.readmission_source == "model"
        assert model_orchestrator.breakers.status(RISK_MODEL) == CircuitStatus.CLOSED


class TestCaching:
    """Results are cached by record content, not by actor."""

    def test_second_evaluation_is_a_cache_hit(self, orchestrator, mid_range_record):
        first = orchestrator.evaluate(mid_range_record, "clinician-1")
        second = orchestrator.evaluate(mid_range_record, "clinician-2")
        assert second == first
        stats = orchestrator.get_resilience_status().cache
        assert (stats.hits, stats.misses, stats.size) == (1, 1, 1)

    def test_cache_expires_after_ttl(self, orchestrator, mid_range_record, clock):
        orchestrator.evaluate(mid_range_record, "clinician-1")
        clock.advance(301)
        orchestrator.evaluate(mid_range_record, "clinician-1")
        assert orchestrator.get_resilience_status().cache.misses == 2

    def test_baseline_fallback_cached_briefly(self, model_orchestrator, mid_range_record, clock):
        """A baseline readmission result expires once the degraded TTL passes."""
        model_orchestrator.predictor.predict.side_effect = ConnectionError("offline")
        first = model_orchestrator.evaluate(mid_range_record, "clinician-1")
        assert first.risk.readmission_source == "baseline"

        model_orchestrator.predictor.predict.side_effect = None
        clock.advance(31)
        second = model_orchestrator.evaluate(mid_range_record, "clinician-1")

        assert second.risk.readmission_source == "model"
        assert model_orchestrator.get_resilience_status().cache.misses == 2

    def test_model_result_keeps_full_ttl(self, model_orchestrator, mid_range_record, clock):
        model_orchestrator.evaluate(mid_range_record, "clinician-1")
        clock.advance(31)
        model_orchestrator.evaluate(mid_range_record, "clinician-1")
        assert model_orchestrator.get_resilience_status().cache.hits == 1

    def test_baseline_without_predictor_keeps_full_ttl(self, orchestrator, mid_range_record, clock):
        orchestrator.evaluate(mid_range_record, "clinician-1")
        clock.advance(31)
        orchestrator.evaluate(mid_range_record, "clinician-1")
        assert orchestrator.get_resilience_status().cache.hits == 1

    def test_cache_failure_does_not_fail_evaluation(self, test_settings, clock, today, mid_range_record):
        backend = MagicMock()
        backend.get.side_effect = redis.ConnectionError("down")
        backend.set.side_effect = redis.ConnectionError("down")
        backend.size.return_value = 0
        orch = build_orchestrator(settings=test_settings, clock=clock, today=today, cache=ScoringCache(backend))
        try:
            result = orch.evaluate(mid_range_record, "clinician-1")
            assert result.composite.score == 79
            assert orch.get_resilience_status().cache.errors == 2
        finally:
            orch.close()


class TestCancellation:
    """Cancelled evaluations report breaker outcomes and skip the cache."""

    def test_cancelled_evaluation_raises_and_skips_cache(self, model_orchestrator, mid_range_record, memory_cache):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(EvaluationCancelled):
            model_orchestrator.evaluate(mid_range_record, "clinician-1", cancel_event=cancel)

        assert memory_cache.size() == 0
        stats = model_orchestrator.breakers.stats(RISK_MODEL)
        assert stats["total_calls"] == 1
        assert model_orchestrator.breakers.status(RISK_MODEL) == CircuitStatus.CLOSED


class TestEventsAndStatus:
    """Completion events and the resilience snapshot."""

    def test_completion_event_published(self, orchestrator, elevated_record):
        subscription = orchestrator.events.subscribe()
        result = orchestrator.evaluate(elevated_record, "clinician-1")
        orchestrator.evaluate(elevated_record, "clinician-1")

        events = subscription.drain()
        assert [e.type for e in events] == [EVALUATION_COMPLETED, EVALUATION_COMPLETED]
        first, second = (e.payload for e in events)
        assert first["actor_id"] == "clinician-1"
        assert first["composite_score"] == result.composite.score
        assert first["risk_level"] == "moderate"
        assert first["duration_ms"] >= 0
        assert (first["cached"], second["cached"]) == (False, True)

    def test_sink_receives_events(self, test_settings, clock, today, memory_cache, mid_range_record):
        sink = MagicMock()
        orch = build_orchestrator(settings=test_settings, sink=sink, clock=clock, today=today, cache=memory_cache)
        try:
            orch.evaluate(mid_range_record, "clinician-1")
        finally:
            orch.close()
        sink.assert_called_once()
        assert sink.call_args.args[0].type == EVALUATION_COMPLETED

    def test_slow_sink_does_not_delay_evaluation(self, test_settings, clock, today, memory_cache, mid_range_record):
        release = threading.Event()
        delivered = []

        def slow_sink(event):
            release.wait(timeout=5)
            delivered.append(event.type)

        orch = build_orchestrator(settings=test_settings, sink=slow_sink, clock=clock, today=today, cache=memory_cache)
        try:
            started = time.perf_counter()
            orch.evaluate(mid_range_record, "clinician-1")
            elapsed = time.perf_counter() - started
            release.set()
        finally:
            orch.close()

        assert elapsed < 1.0
        assert delivered == [EVALUATION_COMPLETED]

    def test_resilience_status(self, model_orchestrator, mid_range_record):
        model_orchestrator.evaluate(mid_range_record, "clinician-1")
        model_orchestrator.evaluate(mid_range_record, "clinician-2")
        model_orchestrator.report_dependency_outcome("ai-insights", False)

        status = model_orchestrator.get_resilience_status()
        assert status.rate_limiter.active_actors == 2
        breakers = {b.name: b for b in status.circuit_breakers}
        assert breakers[RISK_MODEL].status == CircuitStatus.CLOSED
        assert breakers["ai-insights"].failures == 1
        assert status.cache.hit_rate == 0.5
