"""Database Layer — declarative Base and portable column types.

Invariants:
    - Timestamps are stored and returned as timezone-aware UTC
    - Money is stored as NUMERIC(12, 2) and returned as Decimal

Design Decisions:
    - asyncpg driver for PostgreSQL; aiosqlite in tests
"""
