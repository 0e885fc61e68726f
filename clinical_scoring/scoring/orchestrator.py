"""
scoring/orchestrator.py

Full pipeline: indicator record → evaluation result.

Class: ScoringOrchestrator
Method: evaluate(record, actor_id) → EvaluationResult

Pipeline steps:
  1.  RateLimiter.admit(actor_id)           → RateLimitExceeded
  2.  RecordValidator.validate(record)      → ValidationError
  3.  Cache lookup on the record hash; a hit returns directly
  4.  IndicatorScorer → one DomainScore per declared domain (fan-out)
  5.  CompositeScorer → composite score and category
  6.  RiskStratifier → risk profile; the "risk-model" call degrades to the
      static baseline when its breaker is open or the call fails
  7.  QualityAssessor → quality profile
  8.  RecommendationEngine → recommendations, summary, action plan
  9.  Cache write with the evaluation TTL, or the short degraded TTL when
      a configured predictor fell back to the baseline (failures swallowed)
  10. Completion event and return

Callers get a complete EvaluationResult or one of the typed errors. A
cancelled evaluation raises EvaluationCancelled after breaker outcomes were
reported and without writing the cache.
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import structlog

from clinical_scoring.config import Settings, get_settings
from clinical_scoring.core.exceptions import EvaluationCancelled, RateLimitExceeded
from clinical_scoring.models.record import IndicatorRecord
from clinical_scoring.models.results import EvaluationResult, RateLimiterStatus, ResilienceStatus
from clinical_scoring.scoring.composite_scorer import CompositeScorer
from clinical_scoring.scoring.indicator_scorer import IndicatorScorer
from clinical_scoring.scoring.quality_assessor import QualityAssessor
from clinical_scoring.scoring.recommendation_engine import RecommendationEngine
from clinical_scoring.scoring.risk_stratifier import BASELINE_SOURCE, Predictor, RiskStratifier
from clinical_scoring.services.cache import ScoringCache, TTL_DEGRADED, TTL_EVALUATION, create_cache, make_cache_key
from clinical_scoring.services.circuit_breaker import CircuitBreakerRegistry
from clinical_scoring.services.clock import Clock, Today
from clinical_scoring.services.events import EVALUATION_COMPLETED, EventChannel, EventSink
from clinical_scoring.services.rate_limiter import RateLimiter
from clinical_scoring.services.validation import RecordValidator, ShapeValidator

logger = structlog.get_logger(__name__)

CACHE_SCOPE = "oasis"
EVALUATE_OPERATION = "evaluate"


class ScoringOrchestrator:
    """Evaluate records end to end behind the resilience components."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        breakers: CircuitBreakerRegistry,
        cache: ScoringCache,
        indicator_scorer: IndicatorScorer,
        composite_scorer: CompositeScorer,
        risk_stratifier: RiskStratifier,
        quality_assessor: QualityAssessor,
        recommendation_engine: RecommendationEngine,
        events: EventChannel,
        validator: Optional[RecordValidator] = None,
        evaluation_ttl: int = TTL_EVALUATION,
        degraded_ttl: int = TTL_DEGRADED,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.rate_limiter = rate_limiter
        self.breakers = breakers
        self.cache = cache
        self.indicator_scorer = indicator_scorer
        self.composite_scorer = composite_scorer
        self.risk_stratifier = risk_stratifier
        self.quality_assessor = quality_assessor
        self.recommendation_engine = recommendation_engine
        self.events = events
        self.validator = validator or ShapeValidator()
        self.evaluation_ttl = evaluation_ttl
        self.degraded_ttl = degraded_ttl
        self._executor = executor

    # ------------------------------------------------------------------
    # Main pipeline
    # ------------------------------------------------------------------

    def evaluate(
        self,
        record: IndicatorRecord,
        actor_id: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> EvaluationResult:
        """
        Run the full scoring pipeline for one record.

        Args:
            record: Indicator record for one assessment.
            actor_id: Caller identity used for rate limiting only. It does
                not enter the cache key.
            cancel_event: Set by the caller to abandon the evaluation.

        Returns:
            EvaluationResult with domain scores, composite, risk, quality
            and recommendations.

        Raises:
            RateLimitExceeded, ValidationError, EvaluationCancelled
        """
        started = time.perf_counter()
        log = logger.bind(actor_id=actor_id, assessment_kind=record.assessment_kind.value)

        # 1. Admission
        if not self.rate_limiter.admit(actor_id):
            raise RateLimitExceeded(actor_id, self.rate_limiter.retry_after(actor_id))

        # 2. Shape validation
        self.validator.validate(record)

        # 3. Cache lookup
        key = make_cache_key(CACHE_SCOPE, EVALUATE_OPERATION, record.canonical_payload())
        cached = self.cache.get(key, EvaluationResult)
        if cached is not None:
            log.debug("evaluation_cache_hit", cache_key=key)
            self._emit_completed(actor_id, cached, started, cached=True)
            return cached

        # 4. Domain scores
        domains = self.indicator_scorer.score_all(record.assessment_kind, record)

        # 5. Composite
        composite = self.composite_scorer.combine_for(record.assessment_kind, domains)

        # 6. Risk; the guarded predictor call reports its own outcome
        risk = self.risk_stratifier.assess(record)
        self._check_cancelled(cancel_event, log)

        # 7. Quality
        quality = self.quality_assessor.assess(record)

        # 8. Recommendations
        recommendations = self.recommendation_engine.generate(composite, risk, quality)

        result = EvaluationResult(
            assessment_kind=record.assessment_kind,
            domains=domains,
            composite=composite,
            risk=risk,
            quality=quality,
            recommendations=recommendations,
            summary=self.recommendation_engine.summarize(recommendations),
            action_plan=self.recommendation_engine.action_plan(recommendations),
        )
        self._check_cancelled(cancel_event, log)

        # 9. Cache write; a baseline readmission factor is kept only briefly
        degraded = (
            self.risk_stratifier.predictor is not None and risk.readmission_source == BASELINE_SOURCE
        )
        self.cache.set(key, result, self.degraded_ttl if degraded else self.evaluation_ttl)

        # 10. Completion event
        self._emit_completed(actor_id, result, started, cached=False)
        log.info(
            "evaluation_completed",
            composite_score=composite.score,
            risk_level=risk.level.value,
            quality_score=quality.score,
            recommendations=len(recommendations),
        )
        return result

    def _check_cancelled(self, cancel_event: Optional[threading.Event], log) -> None:
        if cancel_event is not None and cancel_event.is_set():
            log.info("evaluation_cancelled")
            raise EvaluationCancelled("Evaluation cancelled by caller")

    def _emit_completed(
        self,
        actor_id: str,
        result: EvaluationResult,
        started: float,
        cached: bool,
    ) -> None:
        self.events.publish(
            EVALUATION_COMPLETED,
            {
                "actor_id": actor_id,
                "composite_score": result.composite.score,
                "risk_level": result.risk.level.value,
                "duration_ms": round((time.perf_counter() - started) * 1000, 3),
                "cached": cached,
            },
        )

    # ------------------------------------------------------------------
    # Collaborator surface
    # ------------------------------------------------------------------

    def report_dependency_outcome(self, name: str, success: bool) -> None:
        """Feed an external call made outside the core into the shared breakers."""
        self.breakers.report(name, success)

    def get_resilience_status(self) -> ResilienceStatus:
        return ResilienceStatus(
            rate_limiter=RateLimiterStatus(active_actors=self.rate_limiter.active_actor_count()),
            circuit_breakers=self.breakers.snapshot(),
            cache=self.cache.stats(),
        )

    def close(self) -> None:
        self.events.close()
        if self._executor is not None:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "ScoringOrchestrator":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def build_orchestrator(
    settings: Optional[Settings] = None,
    predictor: Optional[Predictor] = None,
    sink: Optional[EventSink] = None,
    clock: Optional[Clock] = None,
    today: Optional[Today] = None,
    cache: Optional[ScoringCache] = None,
    max_workers: int = 4,
) -> ScoringOrchestrator:
    """
    Wire an orchestrator from settings.

    All tables are validated here; a bad table raises ConfigurationError
    before any request is served.
    """
    settings = settings or get_settings()
    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="domain-scorer")

    breakers = CircuitBreakerRegistry(
        threshold=settings.CIRCUIT_BREAKER_THRESHOLD,
        reset_timeout=settings.CIRCUIT_BREAKER_RESET_SECONDS,
        clock=clock,
    )

    orchestrator = ScoringOrchestrator(
        rate_limiter=RateLimiter(
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            sweep_interval=settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS,
            clock=clock,
        ),
        breakers=breakers,
        cache=cache or create_cache(
            backend=settings.CACHE_BACKEND,
            redis_url=settings.REDIS_URL,
            max_entries=settings.CACHE_MAX_ENTRIES,
            clock=clock,
        ),
        indicator_scorer=IndicatorScorer(executor=executor),
        composite_scorer=CompositeScorer(),
        risk_stratifier=RiskStratifier(
            breakers=breakers,
            predictor=predictor,
            baseline_risk=settings.READMISSION_BASELINE_RISK,
            timeout=settings.DEPENDENCY_TIMEOUT_SECONDS,
        ),
        quality_assessor=QualityAssessor(
            weights=settings.quality_weights,
            staleness_days=settings.QUALITY_STALENESS_DAYS,
            today=today,
        ),
        recommendation_engine=RecommendationEngine(),
        events=EventChannel(queue_size=settings.EVENT_QUEUE_SIZE, sink=sink),
        evaluation_ttl=settings.CACHE_TTL_EVALUATION,
        degraded_ttl=settings.CACHE_TTL_DEGRADED,
        executor=executor,
    )

    logger.info(
        "orchestrator_ready",
        app_env=settings.APP_ENV,
        cache_backend=settings.CACHE_BACKEND,
        breaker_threshold=settings.CIRCUIT_BREAKER_THRESHOLD,
        rate_limit=settings.RATE_LIMIT_MAX_REQUESTS,
        predictor=predictor is not None,
    )
    return orchestrator
