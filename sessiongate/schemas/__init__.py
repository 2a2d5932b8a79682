"""Pydantic Schemas: request/response contracts for the identity service.

Invariants:
    - Schemas validate at the wire boundary only; the core never sees raw payloads

Design Decisions:
    - Separate from models: schemas are wire contracts, models are persistence
"""
