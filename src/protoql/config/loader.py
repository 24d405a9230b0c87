"""Load ProtoQLConfig from YAML files, the environment and keyword overrides.

Later layers win:

    defaults < ~/.config/protoql/config.yaml < <project>/.protoql/config.yaml
             < PROTOQL__SECTION__KEY env vars < load_config(**kwargs)
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, InitSettingsSource, PydanticBaseSettingsSource, SettingsConfigDict

from protoql.config.models import (
    CompilerConfig,
    DatabaseConfig,
    LoggingConfig,
    OutputConfig,
    ProtoQLConfig,
)
from protoql.core.errors import ConfigError

GLOBAL_CONFIG_PATH = Path("~/.config/protoql/config.yaml").expanduser()
PROJECT_CONFIG_NAME = ".protoql/config.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    """Mapping stored in path; a missing or empty file is {}."""
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top-level value must be a mapping")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _settings_for(file_values: dict[str, Any]) -> type[BaseSettings]:
    """Settings class whose lowest-priority source is the merged YAML."""

    class ProtoQLSettings(BaseSettings):
        model_config = SettingsConfigDict(
            env_prefix="PROTOQL__",
            env_nested_delimiter="__",
            case_sensitive=False,
            extra="ignore",
        )

        logging: LoggingConfig = Field(default_factory=LoggingConfig)
        database: DatabaseConfig = Field(default_factory=DatabaseConfig)
        compiler: CompilerConfig = Field(default_factory=CompilerConfig)
        output: OutputConfig = Field(default_factory=OutputConfig)

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            return (init_settings, env_settings, InitSettingsSource(settings_cls, file_values))

    return ProtoQLSettings


def load_config(project_root: Path | None = None, **kwargs: Any) -> ProtoQLConfig:
    """Resolve the effective configuration.

    Args:
        project_root: Directory that may hold .protoql/config.yaml;
            defaults to the current directory.
        **kwargs: Section overrides, e.g. ``database={"path": "p.db"}``.

    Raises:
        ConfigError: A config file is not valid YAML, or a value fails
            validation.
    """
    root = project_root or Path.cwd()
    file_values = _deep_merge(_load_yaml(GLOBAL_CONFIG_PATH), _load_yaml(root / PROJECT_CONFIG_NAME))

    try:
        settings = _settings_for(file_values)(**kwargs)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ConfigError.invalid_value(location, first.get("input"), first["msg"]) from e

    return ProtoQLConfig.model_validate(settings.model_dump())
