"""Data-access strategies for the search engine.

Primary components:
- ``base``: abstract ``SearchStore`` interface, candidate types and errors.
- ``postgres``: PostgreSQL/pgvector implementation.
- ``embedded``: in-process SQLite implementation (aiosqlite).
- ``memory``: dict-backed implementation.
- ``factory``: strategy selection with fallback.
- ``manager``: registry of open stores keyed by id.

Guidance:
- Prefer ``factory.open_store`` or ``factory.connect`` so callers stay
  decoupled from specific backends.
"""
