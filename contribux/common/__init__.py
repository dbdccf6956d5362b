"""Common utilities shared across the search engine.

Includes:
- ``config``: Pydantic-based configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus metrics for ranking calls and store connections.
- ``errors``: typed errors surfaced to callers regardless of backend.

Import pattern:
- from contribux.common.config import SearchConfig
- from contribux.common.logging import configure_logging
"""
