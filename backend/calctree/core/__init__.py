"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - Entity factories validate; from_persisted() trusts its source

Design Decisions:
    - Functional core separated from imperative shell (ADR: impureim sandwich)
"""
