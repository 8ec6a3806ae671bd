"""
Centralized settings for tablemap.

:class:`MapperSettings` is a validated, cached source of truth for the
knobs a ``TableMapper`` reads at construction time. All fields can be set
through ``TABLEMAP_*`` environment variables (e.g.
``TABLEMAP_SCHEMA_NAME=sales``) or a ``.env`` file.

Tags:
    tablemap, configuration, settings, pydantic, caching

Doc-Types:
    api-reference
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MapperSettings(BaseSettings):
    """Mapper configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TABLEMAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ─────────────────────────────────────────────────
    database_url: str = Field(default="sqlite:///:memory:")
    database_echo: bool = Field(default=False)

    # ── Namespace defaults ───────────────────────────────────────
    schema_name: str | None = Field(default=None, description="Default schema for records that declare none")
    catalog_name: str | None = Field(default=None, description="Default catalog for records that declare none")

    # ── SQL caches ───────────────────────────────────────────────
    update_properties_cache_capacity: int = Field(default=2000, ge=0)
    cacheable_update_properties_count: int = Field(default=3, ge=0)

    # ── Type handling ────────────────────────────────────────────
    enable_offset_datetime_as_timestamp_tz: bool = Field(default=False)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @field_validator("schema_name", "catalog_name", mode="before")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "console"):
            raise ValueError(f"log_format must be 'json' or 'console', got {value!r}")
        return value


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, MapperSettings] = {}


def get_settings(*, _force_reload: bool = False) -> MapperSettings:
    """Load, validate, and cache a :class:`MapperSettings` instance.

    Parameters
    ----------
    _force_reload:
        Bypass cache and re-read the environment.
    """
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = MapperSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Drop the cached settings (tests)."""
    _settings_cache.clear()


__all__ = ["MapperSettings", "get_settings", "clear_settings_cache"]
