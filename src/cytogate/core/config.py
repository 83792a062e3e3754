# src/cytogate/core/config.py
"""Configuration schema and loading for cytogate.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from cytogate.contracts.enums import ExecutionStrategy
from cytogate.core.template.rows import DEFAULT_WILDCARD


class TemplateSettings(BaseModel):
    """How gating templates are validated and built."""

    model_config = {"frozen": True}

    name: str = Field(default="default", description="Name given to the built template")
    strict: bool = Field(
        default=True,
        description="Reject aliases containing dependency-expression operators (! & | :)",
    )
    wildcard: str = Field(
        default=DEFAULT_WILDCARD,
        description="Pop-pattern that marks a multi-output row",
    )
    strip_extra_quotes: bool = Field(
        default=False,
        description="Collapse doubled quotes in gating_args (spreadsheet-exported CSV)",
    )
    expand_placeholders: bool = Field(
        default=True,
        description="Follow each multi-output row with one placeholder row per alias",
    )

    @field_validator("wildcard")
    @classmethod
    def validate_wildcard(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("wildcard cannot be empty")
        return v


class DispatchSettings(BaseModel):
    """Execution strategy for per-group method calls."""

    model_config = {"frozen": True}

    strategy: ExecutionStrategy = Field(
        default=ExecutionStrategy.NONE,
        description="Execution strategy: none (sequential), multicore, cluster",
    )
    workers: int = Field(
        default=1,
        gt=0,
        description="Worker processes for the multicore strategy",
    )
    method_prefix: str = Field(
        default=".",
        description="Prefix prepended to method names to form registry keys",
    )


class LoggingSettings(BaseModel):
    """Log output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="Root log level")
    json_output: bool = Field(default=False, description="Emit JSON lines instead of console output")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


class CytogateSettings(BaseModel):
    """Top-level cytogate configuration. Every section has defaults."""

    model_config = {"frozen": True}

    template: TemplateSettings = Field(default_factory=TemplateSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(config_path: Path) -> CytogateSettings:
    """Load settings from a YAML/TOML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (CYTOGATE_*) - highest priority
    2. Config file
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: CYTOGATE_DISPATCH__workers for nested keys.

    Args:
        config_path: Path to configuration file

    Returns:
        Validated CytogateSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="CYTOGATE",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; Pydantic fields are lowercase
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = {key: _lower_keys(value) for key, value in raw_config.items()}

    return CytogateSettings(**raw_config)


def _lower_keys(value: object) -> object:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value
