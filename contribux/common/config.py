"""Configuration management for the search engine.

This module centralizes environment-driven configuration. It builds on
``pydantic_settings.BaseSettings`` so values can come from environment
variables (prefix ``CONTRIBUX_``), a ``.env`` file, or defaults.

Highlights
- Strongly-typed settings with sensible defaults
- One place to discover the environment variables the engine reads
- Small subclasses to keep store and ranking concerns apart

Usage
- ``config = SearchConfig()`` in an entrypoint
- Or select dynamically: ``config = get_config("store")``
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEVELOPMENT_ENVIRONMENTS = frozenset({"local", "development", "dev", "test"})


class BaseConfig(BaseSettings):
    """Base configuration shared by every component.

    Notes
    - Add new shared settings here so the store and search layers inherit them.
    - Prefer a typed field over reading ``os.environ`` directly.
    """

    model_config = SettingsConfigDict(
        env_prefix="CONTRIBUX_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local", description="Deployment environment name")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: str = Field(default="json", description="json or console")

    @property
    def is_development(self) -> bool:
        """True for environments where lifecycle noise may be logged."""
        return self.env.lower() in DEVELOPMENT_ENVIRONMENTS


class StoreConfig(BaseConfig):
    """Configuration for the data-access layer.

    ``db_strategy`` picks the backend (``auto`` tries the most capable one
    first); ``db_fallback`` allows dropping to the next strategy when the
    selected one cannot be initialised.
    """

    db_strategy: str = Field(default="auto", description="auto, postgres, embedded or memory")
    db_fallback: bool = Field(default=True, description="Fall back on initialisation failure")

    # Full engine
    database_url: Optional[str] = Field(default=None, description="PostgreSQL DSN with pgvector")
    db_command_timeout: float = Field(default=60.0, description="Seconds allowed per command")
    db_connect_timeout: float = Field(default=10.0, description="Seconds allowed to connect")

    # Embeddable engine
    sqlite_path: str = Field(default=":memory:", description="SQLite database path")

    # Vectors
    vector_dimension: int = Field(default=1536, gt=0, description="Embedding dimensionality")


class SearchConfig(StoreConfig):
    """Configuration for ranking calls.

    These are the defaults applied by ``SearchEngine`` when a caller omits
    an argument; explicit arguments always win.
    """

    text_weight: float = Field(default=0.3, ge=0.0)
    vector_weight: float = Field(default=0.7, ge=0.0)
    similarity_threshold: float = Field(default=0.6)
    result_limit: int = Field(default=20)

    user_similarity_threshold: float = Field(default=0.7)
    user_result_limit: int = Field(default=10)

    trending_window_hours: int = Field(default=168)
    trending_min_engagement: int = Field(default=1)

    match_threshold: float = Field(default=0.6)
    match_limit: int = Field(default=10)


def get_config(name: str) -> BaseConfig:
    """Get configuration by component name.

    Parameters
    - name: ``base``, ``store`` or ``search``

    Returns
    - A ``BaseConfig`` subclass instance; unknown names get ``BaseConfig``.
    """
    config_map = {
        "base": BaseConfig,
        "store": StoreConfig,
        "search": SearchConfig,
    }
    config_class = config_map.get(name, BaseConfig)
    return config_class()
