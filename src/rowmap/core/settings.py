"""Settings for rowmap-backed applications.

Configuration comes from environment variables prefixed with ``ROWMAP_``
and from an optional ``.env`` file, validated by pydantic-settings.

Fields
──────
database_url    : Store URL (``memory``, ``sqlite:///path``, bare path, ``postgresql://…``)
schema_version  : Version the managed tables are expected to be at
log_level       : Structlog log level
json_logs       : Force JSON (True) or console (False) rendering; auto when unset
data_dir        : Base directory for relative SQLite paths

Examples:
    >>> import os
    >>> os.environ["ROWMAP_DATABASE_URL"] = "sqlite:///inventory.db"
    >>> RowmapSettings().database_url
    'sqlite:///inventory.db'
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RowmapSettings(BaseSettings):
    """Store location, schema version and logging options."""

    model_config = SettingsConfigDict(
        env_prefix="ROWMAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_url: str = "memory"
    schema_version: int = Field(default=1, ge=1)
    data_dir: Path | None = Field(
        default=None,
        description="Directory that relative SQLite paths resolve against",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level
