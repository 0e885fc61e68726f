"""
Indicator Scorer
clinical_scoring/scoring/indicator_scorer.py

Turns a domain's raw indicator values into a normalized 0-100 DomainScore.

Formula (SUM domains):
    raw   = round(Σ present values / (items_present × max_item_value) × 100)
    score = 100 − raw   for burden domains (higher raw = more dependent)
    score = raw         for capability domains

PRESENCE domains score documentation completeness:
    score = round(items_present / items_total × 100)

Missing indicators are excluded from numerator and items_completed.
"""
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import Dict, List, Optional

import structlog

from clinical_scoring.core.exceptions import ConfigurationError
from clinical_scoring.models.enumerations import AssessmentKind, Domain, Indicator, ValueKind
from clinical_scoring.models.record import IndicatorRecord
from clinical_scoring.models.results import DomainScore
from clinical_scoring.scoring.tables import (
    BURDEN,
    DOMAIN_TABLES,
    INCOMPLETE_CATEGORY,
    INDICATOR_SPECS,
    PRESENCE,
    DomainTable,
    IndicatorSpec,
    domains_for,
)
from clinical_scoring.scoring.utils import band_for, clamp, round_half_up

logger = structlog.get_logger(__name__)


def validate_domain_tables(
    tables: Dict[Domain, DomainTable],
    specs: Dict[Indicator, IndicatorSpec] = INDICATOR_SPECS,
) -> None:
    """Raise ConfigurationError for a domain table that cannot be scored."""
    for domain, table in tables.items():
        if table.domain != domain:
            raise ConfigurationError(f"Domain table keyed {domain.value} describes {table.domain.value}")
        if not table.indicators:
            raise ConfigurationError(f"Domain {domain.value} declares no indicators")
        if table.max_item_value <= 0:
            raise ConfigurationError(f"Domain {domain.value} has non-positive max_item_value")
        for indicator in table.indicators:
            spec = specs.get(indicator)
            if spec is None:
                raise ConfigurationError(
                    f"Domain {domain.value} references undeclared indicator {getattr(indicator, 'value', indicator)}"
                )
            if table.method != PRESENCE and spec.kind != ValueKind.NUMERIC:
                raise ConfigurationError(
                    f"Domain {domain.value} sums non-numeric indicator {indicator.value}"
                )


class IndicatorScorer:
    """Score one domain of a record from its declared indicator table."""

    def __init__(
        self,
        tables: Optional[Dict[Domain, DomainTable]] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.tables = tables if tables is not None else DOMAIN_TABLES
        validate_domain_tables(self.tables)
        self._executor = executor

    def score(self, domain: Domain, record: IndicatorRecord) -> DomainScore:
        """
        Args:
            domain: Domain to score. Must have a table row.
            record: Validated indicator record.

        Returns:
            DomainScore. A domain with no items present scores 0 with
            category "incomplete".
        """
        table = self.tables[domain]

        present: List[float] = []
        for indicator in table.indicators:
            if not record.has(indicator):
                continue
            if table.method == PRESENCE:
                present.append(1.0)
                continue
            value = record.numeric(indicator)
            if value is not None:
                present.append(value)

        items_total = len(table.indicators)
        items_completed = len(present)

        if items_completed == 0:
            return DomainScore(
                domain=domain,
                score=0,
                raw_score=0,
                items_completed=0,
                items_total=items_total,
                category=INCOMPLETE_CATEGORY,
            )

        if table.method == PRESENCE:
            ratio = Decimal(items_completed) / Decimal(items_total)
        else:
            total = sum(Decimal(str(v)) for v in present)
            ratio = total / (Decimal(items_completed) * Decimal(str(table.max_item_value)))

        raw = int(clamp(round_half_up(ratio * 100), 0, 100))
        score = 100 - raw if table.polarity == BURDEN else raw
        category = band_for(score, table.bands, table.lowest_band)

        return DomainScore(
            domain=domain,
            score=score,
            raw_score=raw,
            items_completed=items_completed,
            items_total=items_total,
            category=category,
        )

    def score_present(self, domain: Domain, record: IndicatorRecord) -> Optional[DomainScore]:
        """Like ``score`` but returns None for a domain absent from the record."""
        result = self.score(domain, record)
        return result if result.is_present else None

    def score_all(self, kind: AssessmentKind, record: IndicatorRecord) -> List[DomainScore]:
        """
        Score every domain declared by ``kind``.

        Domains are independent, so they fan out on the executor when one
        was supplied and fan back in here in table order.
        """
        domains = domains_for(kind)
        if self._executor is None:
            scores = [self.score(d, record) for d in domains]
        else:
            futures = [self._executor.submit(self.score, d, record) for d in domains]
            scores = [f.result() for f in futures]

        logger.debug(
            "domains_scored",
            assessment_kind=kind.value,
            scores={s.domain.value: s.score for s in scores},
        )
        return scores
