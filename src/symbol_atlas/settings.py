"""Configuration management for Symbol Atlas."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict, TomlConfigSettingsSource

from symbol_atlas.search.walker import ExclusionRules

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

CONFIG_FILENAME = "symatlas.toml"


def _find_config_toml() -> Path | None:
    """Walk up from cwd looking for ``symatlas.toml``."""
    current = Path.cwd().resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


class DatabaseSettings(BaseSettings):
    """Symbol database source."""

    path: Path | None = Field(default=None, description="JSON symbol dump to load. None starts with an empty database.")


class SearchSettings(BaseSettings):
    """Search, paging and detail-fetch settings."""

    default_page_size: int = Field(default=200, ge=1, description="Results per page when the caller gives no size.")
    cache_ttl_s: float = Field(default=20.0, gt=0, description="Seconds a cached result list lives after last use.")
    cache_capacity: int = Field(default=50, ge=1, description="Max cached queries (oldest evicted first).")
    detail_concurrency: int = Field(default=10, ge=1, description="Max in-flight detail requests without batching.")
    batch_details: bool = Field(default=True, description="Request details for a page in one batch call.")
    operator_prefix: str = Field(default="op", description="Method-name prefix marking operator overloads to skip.")
    skip_constructor_arg_counts: list[int] = Field(
        default_factory=lambda: [0, 1],
        description="Constructor arities treated as compiler-generated (default and copy constructors).",
    )

    def exclusion_rules(self) -> ExclusionRules:
        return ExclusionRules(
            skip_constructor_arg_counts=frozenset(self.skip_constructor_arg_counts),
            operator_prefix=self.operator_prefix,
        )


class AtlasSettings(BaseSettings):
    """Root configuration for Symbol Atlas."""

    model_config = SettingsConfigDict(
        toml_file=CONFIG_FILENAME,
        env_prefix="SYMATLAS_",
        env_nested_delimiter="__",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        toml_path = _find_config_toml()
        sources: list[PydanticBaseSettingsSource] = [init_settings, env_settings]
        if toml_path:
            sources.append(TomlConfigSettingsSource(settings_cls, toml_file=toml_path))
        sources.append(file_secret_settings)
        return tuple(sources)

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
