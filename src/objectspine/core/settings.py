"""Settings for object-spine.

Configuration is read from ``OBJECTSPINE_*`` environment variables and an
optional ``.env`` file, validated once at startup.

Manifesto:
    - **Pydantic validation:** Type-checked at startup, not at first use
    - **Environment-driven:** Reads from env vars and .env files
    - **Sensible defaults:** In-memory SQLite works out of the box

Examples:
    >>> from objectspine.core.settings import get_settings
    >>> get_settings().default_srid
    4326

Tags:
    settings, configuration, pydantic, environment, objectspine
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ObjectSpineSettings(BaseSettings):
    """Engine and CLI settings.

    Fields
    ──────
    database_url        : ``memory``, ``sqlite:///path``, a file path or ``postgresql://``
    log_level           : Structlog log level
    json_logs           : JSON log output; ``None`` picks by TTY
    attachments_bucket  : Blob store bucket holding object attachments
    default_srid        : CRS applied to geometry fields that omit one
    schema_path         : YAML file or directory of entity-type definitions
    """

    model_config = SettingsConfigDict(
        env_prefix="OBJECTSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_url: str = "memory"
    attachments_bucket: str = "attachments"

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Schema ───────────────────────────────────────────────────
    default_srid: int = Field(default=4326, gt=0)
    schema_path: Path | None = Field(
        default=None,
        description="YAML file or directory of entity-type definitions",
    )


@lru_cache(maxsize=1)
def get_settings() -> ObjectSpineSettings:
    """Return the process-wide settings (cached)."""
    return ObjectSpineSettings()
