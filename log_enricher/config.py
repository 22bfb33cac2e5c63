"""Configuration loaded from defaults, env vars, an optional YAML file and CLI args."""

import logging
import os
from dataclasses import dataclass, replace

import yaml

from log_enricher.errors import ConfigError

logger = logging.getLogger(__name__)


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")


def parse_destination(value):
    """Descriptor numbers become ints, anything else is a path."""
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise ConfigError(f"Invalid destination descriptor: {value}")
        return value
    text = str(value).strip()
    if not text:
        raise ConfigError("Destination must not be empty")
    if text.isdigit():
        return int(text)
    return text


@dataclass(frozen=True)
class EnricherConfig:
    destination: object = 1
    log_level: str = "WARNING"
    app_name: str = "python-app"
    agent_enabled: bool = True
    application_logging_enabled: bool = True
    metrics_enabled: bool = True
    forwarding_enabled: bool = True
    max_samples_stored: int = 10000

    @classmethod
    def from_env(cls) -> "EnricherConfig":
        """Create an EnricherConfig from environment variables with defaults."""
        try:
            return cls(
                destination=parse_destination(os.environ.get("ENRICHER_DESTINATION", "1")),
                log_level=os.environ.get("ENRICHER_LOG_LEVEL", cls.log_level).upper(),
                app_name=os.environ.get("ENRICHER_APP_NAME", cls.app_name),
                agent_enabled=_parse_bool(os.environ.get("ENRICHER_AGENT_ENABLED", "true")),
                application_logging_enabled=_parse_bool(
                    os.environ.get("APPLICATION_LOGGING_ENABLED", "true")
                ),
                metrics_enabled=_parse_bool(
                    os.environ.get("APPLICATION_LOGGING_METRICS_ENABLED", "true")
                ),
                forwarding_enabled=_parse_bool(
                    os.environ.get("APPLICATION_LOGGING_FORWARDING_ENABLED", "true")
                ),
                max_samples_stored=int(
                    os.environ.get("ENRICHER_MAX_SAMPLES", str(cls.max_samples_stored))
                ),
            )
        except ValueError as exc:
            raise ConfigError(f"Invalid environment configuration: {exc}") from exc

    def agent_settings(self) -> dict:
        """Nested settings in the shape the agent exposes as ``config``."""
        return {
            "app_name": [self.app_name],
            "application_logging": {
                "enabled": self.application_logging_enabled,
                "metrics": {"enabled": self.metrics_enabled},
                "forwarding": {
                    "enabled": self.forwarding_enabled,
                    "max_samples_stored": self.max_samples_stored,
                },
            },
        }


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def apply_yaml(config: EnricherConfig, data: dict) -> EnricherConfig:
    """Overlay YAML settings on *config*.

    Recognised layout::

        destination: /var/log/app.ndjson
        app_name: checkout
        agent_enabled: true
        log_level: INFO
        application_logging:
          enabled: true
          metrics: {enabled: true}
          forwarding: {enabled: true, max_samples_stored: 10000}
    """
    changes: dict = {}
    if "destination" in data:
        changes["destination"] = parse_destination(data["destination"])
    if "app_name" in data:
        changes["app_name"] = str(data["app_name"])
    if "log_level" in data:
        changes["log_level"] = str(data["log_level"]).upper()
    if "agent_enabled" in data:
        changes["agent_enabled"] = _parse_bool(data["agent_enabled"])

    section = data.get("application_logging") or {}
    if "enabled" in section:
        changes["application_logging_enabled"] = _parse_bool(section["enabled"])
    metrics = section.get("metrics") or {}
    if "enabled" in metrics:
        changes["metrics_enabled"] = _parse_bool(metrics["enabled"])
    forwarding = section.get("forwarding") or {}
    if "enabled" in forwarding:
        changes["forwarding_enabled"] = _parse_bool(forwarding["enabled"])
    if "max_samples_stored" in forwarding:
        try:
            changes["max_samples_stored"] = int(forwarding["max_samples_stored"])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid max_samples_stored: {forwarding['max_samples_stored']!r}") from exc

    return replace(config, **changes)


def load_config(cli_args=None, yaml_data: dict | None = None) -> EnricherConfig:
    """Build config from defaults <- env vars <- YAML <- CLI args (highest priority)."""
    config = EnricherConfig.from_env()
    if yaml_data:
        config = apply_yaml(config, yaml_data)
    if cli_args is not None:
        changes: dict = {}
        if getattr(cli_args, "destination", None) is not None:
            changes["destination"] = parse_destination(cli_args.destination)
        if getattr(cli_args, "log_level", None):
            changes["log_level"] = cli_args.log_level.upper()
        if getattr(cli_args, "app_name", None):
            changes["app_name"] = cli_args.app_name
        config = replace(config, **changes)
    return config
