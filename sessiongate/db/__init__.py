"""Database Infrastructure: SQLAlchemy Base for the session store.

Invariants:
    - All sessions are async (AsyncSession)

Design Decisions:
    - aiosqlite driver by default: the store lives next to the client process
"""
