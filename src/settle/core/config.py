"""Configuration schema and loading for settle.

Settings are validated pydantic models, loaded once at startup and resolved
into immutable WaitSpec/RetrySpec values by PresetRegistry. The engine itself
never reads files or the environment.

Example settings.yaml:

    waits:
      default: {timeout_seconds: 10, poll_interval_seconds: 0.5}
      checkout: {timeout_seconds: "${CHECKOUT_TIMEOUT:-45}", poll_interval_seconds: 1}
    retries:
      default: {max_attempts: 3, initial_delay_seconds: 1, backoff_multiplier: 2, max_delay_seconds: 10}
    logging:
      level: DEBUG
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final, Literal

import structlog
from pydantic import BaseModel, Field, field_validator, model_validator

from settle.contracts.enums import DeadlinePolicy
from settle.contracts.specs import RetrySpec, WaitSpec

logger = structlog.get_logger(__name__)

DEFAULT_PRESET: Final[str] = "default"


class WaitPresetSettings(BaseModel):
    """Timing for one named wait preset. Conditions are supplied at the call site."""

    model_config = {"frozen": True}

    timeout_seconds: float = Field(default=10.0, gt=0, description="Total wait budget")
    poll_interval_seconds: float = Field(default=0.5, gt=0, description="Delay between evaluations")
    deadline_policy: DeadlinePolicy = Field(
        default=DeadlinePolicy.ABSOLUTE,
        description="absolute: conditions share one budget; per_condition: each gets the full timeout",
    )
    max_invalidations: int | None = Field(
        default=None,
        ge=0,
        description="INVALIDATED results tolerated per condition (None = unlimited)",
    )

    @model_validator(mode="after")
    def validate_interval_below_timeout(self) -> WaitPresetSettings:
        """Polling at or above the timeout would evaluate only once."""
        if self.poll_interval_seconds >= self.timeout_seconds:
            raise ValueError(
                f"poll_interval_seconds ({self.poll_interval_seconds}) must be less than "
                f"timeout_seconds ({self.timeout_seconds})"
            )
        return self

    def to_spec(self, name: str) -> WaitSpec:
        return WaitSpec(
            timeout=self.timeout_seconds,
            poll_interval=self.poll_interval_seconds,
            deadline_policy=self.deadline_policy,
            name=name,
            max_invalidations=self.max_invalidations,
        )


class RetryPresetSettings(BaseModel):
    """Retry behavior for one named retry preset.

    Note: max_attempts is the TOTAL number of tries, not the number of retries.
    """

    model_config = {"frozen": True}

    max_attempts: int = Field(default=3, gt=0, description="Total attempts including the first")
    initial_delay_seconds: float = Field(default=1.0, ge=0, description="Delay after the first failure")
    backoff_multiplier: float = Field(default=2.0, ge=1.0, description="Exponential backoff base")
    max_delay_seconds: float = Field(default=10.0, ge=0, description="Upper bound on any single delay")

    def to_spec(self) -> RetrySpec:
        return RetrySpec(
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay_seconds,
            backoff_multiplier=self.backoff_multiplier,
            max_delay=self.max_delay_seconds,
        )


class LoggingSettings(BaseModel):
    """Log output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="Root log level")
    json_output: bool = Field(default=False, description="Emit JSON lines instead of console output")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


def _default_waits() -> dict[str, WaitPresetSettings]:
    return {
        DEFAULT_PRESET: WaitPresetSettings(timeout_seconds=10.0, poll_interval_seconds=0.5),
        "short": WaitPresetSettings(timeout_seconds=5.0, poll_interval_seconds=0.5),
        "long": WaitPresetSettings(timeout_seconds=30.0, poll_interval_seconds=0.5),
    }


def _default_retries() -> dict[str, RetryPresetSettings]:
    return {
        DEFAULT_PRESET: RetryPresetSettings(
            max_attempts=3,
            initial_delay_seconds=1.0,
            backoff_multiplier=2.0,
            max_delay_seconds=10.0,
        ),
        "none": RetryPresetSettings(max_attempts=1),
    }


class SettleSettings(BaseModel):
    """Top-level settle configuration.

    A waits/retries table in a settings file replaces the built-in table
    entirely, so it must define its own "default" preset.
    """

    model_config = {"frozen": True}

    waits: dict[str, WaitPresetSettings] = Field(
        default_factory=_default_waits,
        description="Named wait presets",
    )
    retries: dict[str, RetryPresetSettings] = Field(
        default_factory=_default_retries,
        description="Named retry presets",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Log output configuration",
    )

    @field_validator("waits", "retries", mode="before")
    @classmethod
    def normalize_preset_names(cls, v: Any) -> Any:
        """Preset names are case-insensitive (environment overrides arrive upper-cased)."""
        if isinstance(v, Mapping):
            return {str(name).lower(): preset for name, preset in v.items()}
        return v

    @model_validator(mode="after")
    def validate_default_presets(self) -> SettleSettings:
        if DEFAULT_PRESET not in self.waits:
            raise ValueError(f"waits must define a '{DEFAULT_PRESET}' preset; got {sorted(self.waits)}")
        if DEFAULT_PRESET not in self.retries:
            raise ValueError(f"retries must define a '{DEFAULT_PRESET}' preset; got {sorted(self.retries)}")
        return self


# Environment variable expansion pattern: ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)  # None if no default specified
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            # No env var and no default - keep original so validation reports it
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_keys(value: Any) -> Any:
    """Lower-case mapping keys at every level (Dynaconf upper-cases env overrides)."""
    if isinstance(value, Mapping):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lower_keys(item) for item in value]
    return value


def load_settings(config_path: Path) -> SettleSettings:
    """Load settings from a YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (SETTLE_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from the pydantic schema - lowest priority

    Environment variable format: SETTLE_WAITS__SHORT__TIMEOUT_SECONDS=3 for
    nested keys.

    Raises:
        ValidationError: If configuration fails pydantic validation
        FileNotFoundError: If the config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="SETTLE",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _lower_keys(raw_config)
    raw_config = _expand_env_vars(raw_config)

    return SettleSettings(**raw_config)


@dataclass(frozen=True)
class PresetRegistry:
    """Named WaitSpec/RetrySpec values resolved once from settings.

    Wait presets carry timing only; attach conditions at the call site with
    WaitSpec.with_conditions().

    Example:
        presets = PresetRegistry.from_settings(load_settings(Path("settings.yaml")))
        spec = presets.wait("short").with_conditions(*readiness_conditions())
        retry = presets.retry("default")
    """

    waits: Mapping[str, WaitSpec]
    retries: Mapping[str, RetrySpec]

    @classmethod
    def from_settings(cls, settings: SettleSettings) -> PresetRegistry:
        """Resolve every preset into its spec value.

        Raises:
            InvalidSpecError: If a preset violates a spec invariant not
                covered by settings validation
        """
        waits = {name: preset.to_spec(name) for name, preset in settings.waits.items()}
        retries = {name: preset.to_spec() for name, preset in settings.retries.items()}
        return cls(waits=MappingProxyType(waits), retries=MappingProxyType(retries))

    @classmethod
    def default(cls) -> PresetRegistry:
        """Factory for the built-in presets."""
        return cls.from_settings(SettleSettings())

    def wait(self, name: str = DEFAULT_PRESET) -> WaitSpec:
        """Return the named wait preset.

        Raises:
            KeyError: If no such preset exists (message lists available names)
        """
        try:
            return self.waits[name]
        except KeyError:
            raise KeyError(f"Unknown wait preset '{name}'. Available: {sorted(self.waits)}") from None

    def retry(self, name: str = DEFAULT_PRESET) -> RetrySpec:
        """Return the named retry preset.

        Raises:
            KeyError: If no such preset exists (message lists available names)
        """
        try:
            return self.retries[name]
        except KeyError:
            raise KeyError(f"Unknown retry preset '{name}'. Available: {sorted(self.retries)}") from None

    def as_dict(self) -> dict[str, dict[str, dict[str, Any]]]:
        """Plain-data view of every preset, for display and serialization."""
        return {
            "waits": {
                name: {
                    "timeout_seconds": spec.timeout,
                    "poll_interval_seconds": spec.poll_interval,
                    "deadline_policy": spec.deadline_policy.value,
                    "max_invalidations": spec.max_invalidations,
                }
                for name, spec in sorted(self.waits.items())
            },
            "retries": {
                name: {
                    "max_attempts": spec.max_attempts,
                    "initial_delay_seconds": spec.initial_delay,
                    "backoff_multiplier": spec.backoff_multiplier,
                    "max_delay_seconds": spec.max_delay,
                }
                for name, spec in sorted(self.retries.items())
            },
        }

    def describe(self) -> str:
        """Human-readable summary of the timeout configuration."""
        lines = ["Wait presets:"]
        for name, spec in sorted(self.waits.items()):
            lines.append(
                f"- {name}: timeout {spec.timeout:g}s, poll every {spec.poll_interval * 1000:g}ms, "
                f"{spec.deadline_policy.value} deadline"
            )
        lines.append("Retry presets:")
        for name, retry in sorted(self.retries.items()):
            if retry.max_attempts == 1:
                lines.append(f"- {name}: single attempt")
                continue
            lines.append(
                f"- {name}: {retry.max_attempts} attempts, {retry.initial_delay:g}s initial delay, "
                f"x{retry.backoff_multiplier:g} backoff, {retry.max_delay:g}s max delay"
            )
        return "\n".join(lines)

    def log_configuration(self) -> None:
        """Log describe() at DEBUG, once per loaded configuration."""
        logger.debug("presets_loaded", configuration=self.describe())
