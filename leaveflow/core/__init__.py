"""Core Layer — pure domain logic, no IO, no DB.

Invariants:
    - No module in core/ imports from services/, api/, repositories/, infrastructure/, or db/
    - All functions are pure and deterministic (time is always passed in, never read)

Design Decisions:
    - Functional core separated from imperative shell: the lifecycle engine and
      delivery workers orchestrate IO around these functions
"""
