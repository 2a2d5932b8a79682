"""ORM Models: SQLAlchemy declarative models for the durable session store.

Invariants:
    - All models inherit from Base (db/base.py)

Design Decisions:
    - Models imported here so Base.metadata knows every table before create_all runs
"""

from sessiongate.models.stored_entry import StoredEntry  # noqa: F401
