"""Tests for the contribux search engine.

Unit tests run against the embedded and memory store strategies. Tests
under ``integration/`` need a PostgreSQL server with pgvector and are
skipped unless ``CONTRIBUX_DATABASE_URL`` is set.
"""
