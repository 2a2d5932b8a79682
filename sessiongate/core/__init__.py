"""Core Layer: pure gating logic, no IO, no async, no storage.

Invariants:
    - No module in core/ imports from services/, infrastructure/, models/ or db/
    - All functions are pure and deterministic

Design Decisions:
    - Functional core separated from the imperative shell (services/, infrastructure/)
"""
