"""
scoring/ - Clinical scoring engine

Modules:
    utils.py                  - Decimal utilities
    tables.py                 - Indicator registry, domain and weight tables
    indicator_scorer.py       - Domain scores from raw indicators
    composite_scorer.py       - Weighted composite across domains
    risk_stratifier.py        - Risk factors, level, alerts, monitoring
    quality_assessor.py       - Documentation quality score
    recommendation_engine.py  - Rule-based recommendations and action plan
    orchestrator.py           - Full evaluation pipeline
"""
