"""LeaveFlow Package — leave-request lifecycle engine with durable notification delivery.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
