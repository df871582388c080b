"""Services Layer — lifecycle engine, notification outbox, dispatcher, and delivery queue.

Invariants:
    - Services orchestrate IO around pure core functions
    - Lifecycle transitions commit before any notification work begins

Design Decisions:
    - Explicit service objects with injected collaborators, no module-level singletons
"""
