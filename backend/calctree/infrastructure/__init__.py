"""Infrastructure Layer — database, cache backends, unit of work and wiring.

Invariants:
    - Implements the Protocols in core/repository_protocols.py; core never imports from here
    - SQLAlchemy failures mapped to DatabaseError; cache backends raise freely (ResilientCache absorbs)

Design Decisions:
    - Backends swappable behind Protocols: memory (dev/tests), Redis, edge KV namespace
"""
