"""Services Layer — CalculationService orchestration and cache resilience.

Invariants:
    - Services depend on Protocols only (UnitOfWork, CacheRepository), never on SQLAlchemy or Redis

Design Decisions:
    - Cache failure policy lives in one decorator (ResilientCache), not in each call site
"""
