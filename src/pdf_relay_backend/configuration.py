from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from omegaconf import OmegaConf
from omegaconf.errors import OmegaConfBaseException

from .errors import ConfigurationError

CONFIG_FILE_ENV = "PDF_RELAY_CONFIG"

# Environment variable -> RelayConfig field
ENV_FIELDS: Dict[str, str] = {
    "N8N_WEBHOOK_URL": "webhook_url",
    "HOST": "host",
    "PORT": "port",
    "MAX_FILE_SIZE_MB": "max_file_size_mb",
    "TEMP_DIR": "temp_dir",
    "APP_ENV": "environment",
    "MAX_BATCH_FILES": "max_batch_files",
    "SINGLE_TIMEOUT_SECONDS": "single_timeout_seconds",
    "BATCH_TIMEOUT_SECONDS": "batch_timeout_seconds",
    "SWEEP_INTERVAL_SECONDS": "sweep_interval_seconds",
    "STAGED_FILE_TTL_SECONDS": "staged_file_ttl_seconds",
    "LOG_LEVEL": "log_level",
}

LOG_LEVELS = ["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

_POSITIVE_FIELDS = [
    "max_file_size_mb",
    "max_batch_files",
    "single_timeout_seconds",
    "batch_timeout_seconds",
    "sweep_interval_seconds",
    "staged_file_ttl_seconds",
]


@dataclass
class RelayConfig:
    """
    Runtime configuration shared by every component of the service.

    Built once at startup by ``load_config`` and handed to ``create_app``;
    components receive the values they need through their constructors.
    """

    webhook_url: str = ""
    host: str = "0.0.0.0"
    port: int = 3000
    max_file_size_mb: int = 80
    temp_dir: str = "./uploads"
    environment: str = "development"
    max_batch_files: int = 10
    single_timeout_seconds: float = 120.0
    batch_timeout_seconds: float = 600.0
    sweep_interval_seconds: float = 1800.0
    staged_file_ttl_seconds: float = 1800.0
    log_level: str = "INFO"

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @property
    def staging_dir(self) -> Path:
        return Path(self.temp_dir)

    @property
    def redacted_webhook_url(self) -> str:
        """Leading part of the webhook URL, safe to show in status output."""
        return self.webhook_url[:50] + "..."


def _env_layer(environ: Mapping[str, str]) -> Dict[str, Any]:
    layer: Dict[str, Any] = {}
    for env_name, field_name in ENV_FIELDS.items():
        value = environ.get(env_name)
        if value is not None and value.strip() != "":
            layer[field_name] = value.strip()
    return layer


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> RelayConfig:
    """
    Build the service configuration.

    Layers are merged lowest precedence first: dataclass defaults, the YAML
    file named by ``PDF_RELAY_CONFIG`` (when set), environment variables,
    then ``overrides``.

    Args:
        environ: Mapping to read variables from (default: ``os.environ``)
        overrides: Explicit field values, mainly for tests and embedding

    Returns:
        A validated RelayConfig

    Raises:
        ConfigurationError: If the webhook URL is missing, a value cannot be
            converted to its field type, or a limit is not positive
    """
    environ = os.environ if environ is None else environ
    layers = [OmegaConf.structured(RelayConfig)]

    config_file = environ.get(CONFIG_FILE_ENV)
    if config_file:
        path = Path(config_file)
        if not path.exists():
            raise ConfigurationError(f"Config file not found at {path}")
        layers.append(OmegaConf.load(path))

    layers.append(OmegaConf.create(_env_layer(environ)))
    if overrides:
        layers.append(OmegaConf.create(overrides))

    try:
        merged = OmegaConf.merge(*layers)
        config: RelayConfig = OmegaConf.to_object(merged)  # type: ignore[assignment]
    except OmegaConfBaseException as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    if not config.webhook_url:
        raise ConfigurationError("N8N_WEBHOOK_URL is not configured")

    for field_name in _POSITIVE_FIELDS:
        if getattr(config, field_name) <= 0:
            raise ConfigurationError(f"{field_name} must be greater than zero")

    config.log_level = config.log_level.upper()
    if config.log_level not in LOG_LEVELS:
        raise ConfigurationError(f"log_level must be one of {', '.join(LOG_LEVELS)}")

    return config
