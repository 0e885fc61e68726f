# tests/conftest.py

"""
Pytest Fixtures - Shared records, clocks and components for the scoring core

RECORD REFERENCE (start of care, SOC 2026-03-07, completed 2026-03-10):
- mid_range_record:  every scored item = 1        → composite 79 (fair), risk 23 (minimal)
- elevated_record:   ADL items = 2, mobility = 3  → composite 63 (poor), risk 51 (moderate)
                     fall 0.80 (critical alert), functional 0.75 (high alert)
"""

import pytest

from clinical_scoring.config import Settings
from clinical_scoring.models.enumerations import AssessmentKind
from clinical_scoring.models.record import IndicatorRecord
from clinical_scoring.scoring.orchestrator import build_orchestrator
from clinical_scoring.services.cache import ScoringCache
from clinical_scoring.services.clock import ManualClock
from clinical_scoring.services.memory_cache import MemoryCacheBackend
from tests.factories import TODAY, make_record


# =============================================================================
# CLOCK FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    """Manual monotonic clock; tests advance it instead of sleeping."""
    return ManualClock()


@pytest.fixture
def today():
    return lambda: TODAY


# =============================================================================
# RECORD FIXTURES
# =============================================================================

@pytest.fixture
def mid_range_record():
    """Every scored item = 1 on its scale."""
    return make_record()


@pytest.fixture
def elevated_record():
    """ADL items = 2 and mobility = 3: fall and functional factors cross 0.6."""
    return make_record(adl=2, mobility=3)


@pytest.fixture
def empty_record():
    return IndicatorRecord(assessment_kind=AssessmentKind.START_OF_CARE, values={})


# =============================================================================
# COMPONENT FIXTURES
# =============================================================================

@pytest.fixture
def test_settings():
    """Default settings, isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def memory_cache(clock):
    return ScoringCache(MemoryCacheBackend(max_entries=100, clock=clock))


@pytest.fixture
def orchestrator(test_settings, clock, today, memory_cache):
    orch = build_orchestrator(
        settings=test_settings,
        clock=clock,
        today=today,
        cache=memory_cache,
    )
    yield orch
    orch.close()
