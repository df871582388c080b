"""Infrastructure Layer — database sessions, mail transport, clock, and logging.

Invariants:
    - Infrastructure never imports from services/
    - External calls map their failures onto the core error hierarchy
"""
