"""Controller manager configuration loading, defaulting and validation."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import yaml

from .utils.errors import ConfigurationError

DEFAULT_MAX_CONCURRENT_RECONCILES = 50
DEFAULT_MAX_CONCURRENT_RECONCILES_PER_NAMESPACE = 3
DEFAULT_QUOTA_EXCEEDED_RETRY_DELAY = timedelta(hours=24)
DEFAULT_MAX_OBJECT_SIZE = 100 * 1024

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


@dataclass
class ShootControllerConfiguration:
    """Configuration of the Shoot controller."""

    max_concurrent_reconciles: int = DEFAULT_MAX_CONCURRENT_RECONCILES
    max_concurrent_reconciles_per_namespace: int = DEFAULT_MAX_CONCURRENT_RECONCILES_PER_NAMESPACE
    # Only consumed by the deployment tooling.
    quota_exceeded_retry_delay: timedelta = DEFAULT_QUOTA_EXCEEDED_RETRY_DELAY


@dataclass
class ConfigMapValidationConfiguration:
    """Configuration of the ConfigMap validating webhook."""

    max_object_size: int = DEFAULT_MAX_OBJECT_SIZE


@dataclass
class ControllerManagerConfiguration:
    """Top level configuration of the controller manager."""

    kind: str = ""
    api_version: str = ""
    shoot: ShootControllerConfiguration = field(default_factory=ShootControllerConfiguration)
    config_map_validation: ConfigMapValidationConfiguration = field(
        default_factory=ConfigMapValidationConfiguration
    )


def parse_duration(value: Any) -> timedelta:
    """Parse a Go style duration string such as ``24h`` or ``1h30m``.

    Plain numbers are interpreted as seconds.

    Raises:
        ValueError: If the value is not a valid duration
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if not isinstance(value, str) or not value:
        raise ValueError(f"invalid duration {value!r}")

    text = value.strip()
    sign = 1
    if text[:1] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)

    seconds = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"invalid duration {value!r}")
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return timedelta(seconds=sign * seconds)


def _int_option(section: dict[str, Any], key: str, default: int, field_path: str) -> int:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(field_path, value, "must be an integer")
    return value


def _section(data: dict[str, Any], key: str, field_path: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(field_path, value, "must be a mapping")
    return value


def configuration_from_dict(data: dict[str, Any]) -> ControllerManagerConfiguration:
    """Build a configuration from decoded YAML, applying defaults for unset fields."""
    if not isinstance(data, dict):
        raise ConfigurationError("", data, "configuration must be a mapping")

    controllers = _section(data, "controllers", "controllers")
    shoot = _section(controllers, "shoot", "controllers.shoot")
    webhooks = _section(data, "webhooks", "webhooks")
    validation = _section(webhooks, "configMapValidation", "webhooks.configMapValidation")

    retry_delay = shoot.get("quotaExceededRetryDelay")
    if retry_delay is None:
        quota_exceeded_retry_delay = DEFAULT_QUOTA_EXCEEDED_RETRY_DELAY
    else:
        try:
            quota_exceeded_retry_delay = parse_duration(retry_delay)
        except ValueError as e:
            raise ConfigurationError("controllers.shoot.quotaExceededRetryDelay", retry_delay, str(e)) from e

    return ControllerManagerConfiguration(
        kind=data.get("kind") or "",
        api_version=data.get("apiVersion") or "",
        shoot=ShootControllerConfiguration(
            max_concurrent_reconciles=_int_option(
                shoot,
                "maxConcurrentReconciles",
                DEFAULT_MAX_CONCURRENT_RECONCILES,
                "controllers.shoot.maxConcurrentReconciles",
            ),
            max_concurrent_reconciles_per_namespace=_int_option(
                shoot,
                "maxConcurrentReconcilesPerNamespace",
                DEFAULT_MAX_CONCURRENT_RECONCILES_PER_NAMESPACE,
                "controllers.shoot.maxConcurrentReconcilesPerNamespace",
            ),
            quota_exceeded_retry_delay=quota_exceeded_retry_delay,
        ),
        config_map_validation=ConfigMapValidationConfiguration(
            max_object_size=_int_option(
                validation,
                "maxObjectSize",
                DEFAULT_MAX_OBJECT_SIZE,
                "webhooks.configMapValidation.maxObjectSize",
            ),
        ),
    )


def validate_configuration(cfg: ControllerManagerConfiguration) -> None:
    """Validate a configuration.

    Raises:
        ConfigurationError: For the first invalid field
    """
    shoot = cfg.shoot
    if shoot.max_concurrent_reconciles < 1:
        raise ConfigurationError(
            "controllers.shoot.maxConcurrentReconciles",
            shoot.max_concurrent_reconciles,
            "must be 1 or greater",
        )

    if shoot.max_concurrent_reconciles_per_namespace > shoot.max_concurrent_reconciles:
        raise ConfigurationError(
            "controllers.shoot.maxConcurrentReconcilesPerNamespace",
            shoot.max_concurrent_reconciles_per_namespace,
            "must not be greater than maxConcurrentReconciles",
        )

    if shoot.max_concurrent_reconciles_per_namespace < 1:
        raise ConfigurationError(
            "controllers.shoot.maxConcurrentReconcilesPerNamespace",
            shoot.max_concurrent_reconciles_per_namespace,
            "must be 1 or greater",
        )

    if cfg.config_map_validation.max_object_size < 1:
        raise ConfigurationError(
            "webhooks.configMapValidation.maxObjectSize",
            cfg.config_map_validation.max_object_size,
            "must be 1 or greater",
        )


def read_controller_manager_configuration(config_file: str | None = None) -> ControllerManagerConfiguration:
    """Read the configuration file (if any), apply defaults and validate.

    Args:
        config_file: Path to a YAML configuration file. Falls back to the
            ``CONTROLLER_CONFIG_FILE`` environment variable; defaults only
            when neither is set.

    Returns:
        A validated configuration

    Raises:
        ConfigurationError: If the configuration is invalid
        OSError: If the file cannot be read
        yaml.YAMLError: If the file is not valid YAML
    """
    if config_file is None:
        config_file = os.getenv("CONTROLLER_CONFIG_FILE", "")

    data: dict[str, Any] = {}
    if config_file:
        with open(config_file, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    cfg = configuration_from_dict(data)
    validate_configuration(cfg)
    return cfg
