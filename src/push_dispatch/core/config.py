"""Configuration system for push-dispatch.

This module implements the configuration schema using Pydantic for
validation, with support for environment variable resolution and fail-fast
validation with actionable error messages. The original camelCase option
names (``apiKey``, ``sendOptions``, ``kue``...) are accepted as aliases.
"""

import os
import re
from enum import Enum
from pathlib import Path
from typing import Annotated, Final, Literal

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from push_dispatch.core.errors import PushDispatchError

# Matches ${VARIABLE_NAME} syntax where VARIABLE_NAME can contain letters, digits, and underscores
ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Z0-9_]+)\}")

DEFAULT_QUEUE_NAME: Final[str] = "push:queued"
DEFAULT_MODEL_NAME: Final[str] = "PushNotification"


class ExecutionMode(Enum):
    """Whether dispatch contacts the push gateway or fabricates success."""

    SIMULATED = "simulated"
    LIVE = "live"


type DeploymentProfile = Literal["development", "test", "production"]

_PROFILE_MODES: Final[dict[str, ExecutionMode]] = {
    "development": ExecutionMode.SIMULATED,
    "test": ExecutionMode.SIMULATED,
    "production": ExecutionMode.LIVE,
}


class _Section(BaseModel):
    model_config: ConfigDict = ConfigDict(  # pyright: ignore[reportIncompatibleVariableOverride]
        extra="forbid",
        populate_by_name=True,
        validate_default=True,
    )


class ModelConfig(_Section):
    """Record type settings.

    ``extension_fields`` (``fields`` in YAML) declares extension fields and their default values; they are
    merged into every new record's ``extra`` mapping.
    """

    name: Annotated[
        str,
        Field(min_length=1, description="Record type name"),
    ] = DEFAULT_MODEL_NAME
    extension_fields: Annotated[
        dict[str, object],
        Field(
            validation_alias=AliasChoices("fields", "extension_fields"),
            description="Additional record fields with default values",
        ),
    ] = {}


class PushConfig(_Section):
    """Configuration for the dispatch engine and push gateway."""

    api_key: Annotated[
        str,
        Field(
            validation_alias=AliasChoices("api_key", "apiKey"),
            description="Push gateway server key",
        ),
    ] = ""
    request_options: Annotated[
        dict[str, object],
        Field(
            validation_alias=AliasChoices("request_options", "requestOptions"),
            description="Transport request overrides (url, timeout, headers, proxy)",
        ),
    ] = {}
    send_options: Annotated[
        dict[str, object],
        Field(
            validation_alias=AliasChoices("send_options", "sendOptions"),
            description="Default per-send options",
        ),
    ] = {}
    model: Annotated[
        ModelConfig,
        Field(description="Record type settings"),
    ] = ModelConfig()
    debug: Annotated[
        bool,
        Field(description="Log full notification outcomes"),
    ] = False
    logger: Annotated[
        str,
        Field(min_length=1, description="Logger name receiving debug output"),
    ] = "push_dispatch"
    profile: Annotated[
        DeploymentProfile,
        Field(description="Deployment profile used to pick the default execution mode"),
    ] = "development"
    mode: Annotated[
        ExecutionMode | None,
        Field(description="Explicit execution mode; defaults from profile"),
    ] = None

    @property
    def execution_mode(self) -> ExecutionMode:
        """Resolve the effective execution mode."""
        if self.mode is not None:
            return self.mode
        return _PROFILE_MODES[self.profile]


class QueueConfig(_Section):
    """Configuration for the durable work queue and its worker."""

    concurrency: Annotated[
        int,
        Field(gt=0, le=1000, description="Maximum jobs processed concurrently"),
    ] = 10
    name: Annotated[
        str,
        Field(
            min_length=1,
            validation_alias=AliasChoices("name", "queue"),
            description="Queue name shared by publisher and worker",
        ),
    ] = DEFAULT_QUEUE_NAME
    connection: Annotated[
        dict[str, object],
        Field(description="Broker connection settings"),
    ] = {}
    timeout: Annotated[
        float,
        Field(gt=0, description="Graceful shutdown timeout in seconds"),
    ] = 5.0
    attempts: Annotated[
        int,
        Field(ge=1, le=100, description="Broker attempts per job before it stays failed"),
    ] = 1


class StoreConfig(_Section):
    """Configuration for the record store."""

    path: Annotated[
        Path | None,
        Field(description="JSON file backing the record store; in-memory when unset"),
    ] = None


class ApplicationConfig(_Section):
    """Configuration for application-level settings."""

    log_level: Annotated[
        str,
        Field(
            description="Logging level",
            pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        ),
    ] = "INFO"


class MainConfig(_Section):
    """Main application configuration schema.

    Top-level configuration container aggregating all configuration sections:
    - push: dispatch engine and gateway settings
    - queue: work queue settings; queueing is disabled when absent
    - store: record store settings
    - application: application-level settings
    """

    push: Annotated[
        PushConfig,
        Field(description="Dispatch engine configuration"),
    ] = PushConfig()
    queue: Annotated[
        QueueConfig | None,
        Field(
            validation_alias=AliasChoices("queue", "kue"),
            description="Work queue configuration",
        ),
    ] = None
    store: Annotated[
        StoreConfig,
        Field(description="Record store configuration"),
    ] = StoreConfig()
    application: Annotated[
        ApplicationConfig,
        Field(description="Application-level configuration"),
    ] = ApplicationConfig()


class EnvironmentVariableError(Exception):
    """Exception raised when environment variable resolution fails.

    Messages name the missing variable without exposing secret values.
    """


class ConfigurationError(PushDispatchError):
    """Exception raised when configuration loading or validation fails."""


def resolve_env_var(value: str) -> str:
    """Resolve ``${VARIABLE_NAME}`` references in a string value.

    Raises:
        EnvironmentVariableError: If a referenced variable is not set

    Examples:
        >>> os.environ["TEST_VAR"] = "secret_value"
        >>> resolve_env_var("key=${TEST_VAR}")
        'key=secret_value'
    """

    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            msg = (
                f"Required environment variable '{var_name}' is not set. "
                f"Please set this variable before starting the application."
            )
            raise EnvironmentVariableError(msg)
        return env_value

    return ENV_VAR_PATTERN.sub(replace_match, value)


def resolve_env_vars(data: object) -> object:
    """Recursively resolve environment variables in YAML data.

    Strings are resolved; mappings and lists are traversed; other values are
    preserved as-is.
    """
    if isinstance(data, str):
        return resolve_env_var(data)
    if isinstance(data, dict):
        return {key: resolve_env_vars(value) for key, value in data.items()}  # pyright: ignore[reportUnknownVariableType]  # YAML boundary
    if isinstance(data, list):
        return [resolve_env_vars(item) for item in data]  # pyright: ignore[reportUnknownVariableType]  # YAML boundary
    return data


def parse_config(raw_data: object, *, source: str = "<config>") -> MainConfig:
    """Validate already-loaded configuration data.

    Raises:
        ConfigurationError: If the data is not a mapping or fails validation
    """
    if raw_data is None:
        raw_data = {}
    if not isinstance(raw_data, dict):
        msg = (
            f"Invalid configuration format: {source}\n"
            f"Expected a dictionary at root level, got: {type(raw_data).__name__}"
        )
        raise ConfigurationError(msg)

    try:
        resolved_data = resolve_env_vars(raw_data)
    except EnvironmentVariableError as e:
        msg = f"Environment variable resolution failed in: {source}\n{e}"
        raise ConfigurationError(msg) from e

    try:
        return MainConfig.model_validate(resolved_data)
    except ValidationError as e:
        error_lines = ["Configuration validation failed:", ""]
        for error in e.errors():
            field_path = " → ".join(str(loc) for loc in error["loc"])
            error_lines.append(f"  Field: {field_path}")
            error_lines.append(f"  Error: {error['msg']}")
            error_lines.append(f"  Type: {error['type']}")
            error_lines.append("")
        error_lines.append(f"Configuration source: {source}")
        error_lines.append("Please fix the above errors and try again.")
        raise ConfigurationError("\n".join(error_lines)) from e


def load_main_config(config_path: Path) -> MainConfig:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Validated MainConfig instance

    Raises:
        ConfigurationError: If the file cannot be loaded or is invalid
    """
    if not config_path.exists():
        msg = (
            f"Configuration file not found: {config_path}\n"
            f"Please create a configuration file at this location."
        )
        raise ConfigurationError(msg)

    try:
        with config_path.open("r", encoding="utf-8") as f:
            raw_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]  # YAML boundary
    except yaml.YAMLError as e:
        msg = (
            f"Failed to parse YAML configuration file: {config_path}\n"
            f"YAML parsing error: {e}\n"
            f"Please check the file for syntax errors."
        )
        raise ConfigurationError(msg) from e
    except OSError as e:
        msg = f"Failed to read configuration file: {config_path}\nError: {e}\nPlease check file permissions."
        raise ConfigurationError(msg) from e

    return parse_config(raw_data, source=str(config_path))
