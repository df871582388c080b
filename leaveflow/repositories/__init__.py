"""Repositories — SQLAlchemy implementations of the core store protocols.

Invariants:
    - Each repository wraps one AsyncSession; the caller owns the transaction
    - Mutations are single guarded UPDATE statements reporting success via rowcount
"""
