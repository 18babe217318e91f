# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings. Cache paths are
not read from module globals anywhere else: callers build a CacheConfig from
Settings and hand it to the components that need it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Cache ===
    cache_root: Path = Path("~/.quartocache/cache")
    cache_rendered_dirname: str = "rendered_docs"
    cache_assets_dirname: str = "assets"

    # === Served assets ===
    asset_route: str = "/api/assets"
    asset_dir_suffix: str = "_files"

    # === Documents ===
    document_extension: str = ".qmd"
    executable_engines: str = "r,python,julia,ojs,bash,sh,sql,mermaid,dot"

    # === Chunk renderer ===
    chunk_renderer: Literal["echo", "subprocess"] = "echo"
    chunk_render_command: str = "quarto render {input} --to html --output -"
    chunk_render_timeout_s: float = 120.0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("asset_route")
    @classmethod
    def validate_asset_route(cls, v: str) -> str:  # noqa: N805
        """Served asset route must be absolute and carry no trailing slash."""
        if not v.startswith("/"):
            raise ValueError("asset_route must start with '/'")
        return v.rstrip("/") or "/"

    @field_validator("asset_dir_suffix", "cache_rendered_dirname", "cache_assets_dirname")
    @classmethod
    def validate_path_component(cls, v: str) -> str:  # noqa: N805
        if not v or "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError(f"invalid path component: {v!r}")
        return v

    @field_validator("chunk_render_timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError("chunk_render_timeout_s must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.cache_rendered_dirname == self.cache_assets_dirname:
            errors.append(
                "CACHE_RENDERED_DIRNAME and CACHE_ASSETS_DIRNAME must differ"
            )

        if not self.document_extension.startswith("."):
            errors.append("DOCUMENT_EXTENSION must start with '.'")

        if self.chunk_renderer == "subprocess" and "{input}" not in self.chunk_render_command:
            errors.append("CHUNK_RENDER_COMMAND must contain an {input} placeholder")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def executable_engines_list(self) -> list[str]:
        """Parse comma-separated executable engine names (lowercased)."""
        return [e.strip().lower() for e in self.executable_engines.split(",") if e.strip()]


class CacheConfig(BaseModel):
    """Explicit cache layout handed to the cache manager and materializer."""

    model_config = ConfigDict(frozen=True)

    cache_root: Path
    rendered_docs_dir: Path
    assets_dir: Path
    asset_route: str = "/api/assets"
    asset_dir_suffix: str = "_files"

    @classmethod
    def from_settings(cls, settings: Settings) -> CacheConfig:
        root = Path(settings.cache_root).expanduser()
        return cls(
            cache_root=root,
            rendered_docs_dir=root / settings.cache_rendered_dirname,
            assets_dir=root / settings.cache_assets_dirname,
            asset_route=settings.asset_route,
            asset_dir_suffix=settings.asset_dir_suffix,
        )

    @classmethod
    def under(cls, cache_root: Path, **kwargs: str) -> CacheConfig:
        """Build a config with the default sub-directory names below cache_root."""
        root = Path(cache_root).expanduser()
        return cls(
            cache_root=root,
            rendered_docs_dir=root / "rendered_docs",
            assets_dir=root / "assets",
            **kwargs,
        )


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-call config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
