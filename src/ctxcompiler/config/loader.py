"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority)
2. Environment variables (CTXC__SECTION__KEY)
3. Project config (.ctxcompiler/config.yaml)
4. Built-in defaults (lowest priority)

Malformed YAML, invalid values and contradictory settings (a scope mapping
that is not a single tree) all raise ConfigError before any analysis starts.
"""

from pathlib import Path
from typing import Any, NoReturn

import structlog
import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from ctxcompiler.config.constants import CONFIG_DIR
from ctxcompiler.config.models import (
    CtxCompilerConfig,
    LimitsConfig,
    LoggingConfig,
    OutputConfig,
    ResolutionConfig,
    ScanConfig,
    ScopeConfig,
    TraversalConfig,
    WeightsConfig,
)
from ctxcompiler.core.errors import ConfigError

logger = structlog.get_logger()


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top level must be a mapping")
    return data


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class with instance-based YAML source (thread-safe)."""

    class CtxCompilerSettings(BaseSettings):
        """Root settings. Env vars: CTXC__LOGGING__LEVEL, CTXC__SCAN__MAX_WORKERS, etc."""

        model_config = SettingsConfigDict(
            env_prefix="CTXC__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        scan: ScanConfig = ScanConfig()
        scopes: ScopeConfig = ScopeConfig()
        limits: LimitsConfig = LimitsConfig()
        traversal: TraversalConfig = TraversalConfig()
        weights: WeightsConfig = WeightsConfig()
        resolution: ResolutionConfig = ResolutionConfig()
        output: OutputConfig = OutputConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml file
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return CtxCompilerSettings


def _raise_validation(e: ValidationError) -> NoReturn:
    err = e.errors()[0]
    field = ".".join(str(loc) for loc in err["loc"])
    raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e


def check_contradictions(config: CtxCompilerConfig) -> None:
    """Reject settings that are individually valid but cannot hold together."""
    reason = config.scopes.contradiction()
    if reason is not None:
        raise ConfigError.contradiction("scopes.parents", reason)


def load_config(
    repo_root: Path | None = None,
    config_file: Path | None = None,
    **kwargs: Any,
) -> CtxCompilerConfig:
    """Load config: defaults < project YAML < env vars < kwargs.

    Args:
        repo_root: Repository root to load config from.
                   Defaults to current working directory.
        config_file: Explicit YAML file replacing .ctxcompiler/config.yaml.
        **kwargs: Override values per section (highest precedence).

    Returns:
        Frozen, fully resolved configuration object.

    Raises:
        ConfigError: On invalid YAML syntax, validation errors or contradictions.
    """
    repo_root = repo_root or Path.cwd()
    path = config_file or repo_root / CONFIG_DIR / "config.yaml"
    yaml_config = _load_yaml(path)

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
        config = CtxCompilerConfig.model_validate(settings.model_dump())
    except ValidationError as e:
        _raise_validation(e)

    check_contradictions(config)
    logger.debug("config_loaded", path=str(path), from_file=bool(yaml_config))
    return config
