"""Infrastructure Layer: storage backends, HTTP clients and cross-cutting concerns.

Invariants:
    - All external calls wrapped with timeout and error mapping to core/errors.py
"""
