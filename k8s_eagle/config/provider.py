"""Runtime configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass
from typing import Optional, Protocol

RESTART_POLICIES = ("never", "on-failure")
LOG_FORMATS = ("json", "text")
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class RuntimeConfig:
    """Process-level settings (everything that is not the watcher document)."""
    config_path: str = "/config/config.yaml"
    secrets_path: str = "/secrets"
    log_level: str = "INFO"
    log_format: str = "json"
    max_in_flight: int = 64
    webhook_timeout: float = 10.0
    drain_timeout: float = 5.0
    restart_policy: str = "never"
    backoff_initial: float = 1.0
    backoff_max: float = 60.0
    health_port: Optional[int] = None

    def validate(self) -> "RuntimeConfig":
        """Reject settings the rest of the process cannot work with."""
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {LOG_LEVELS}, got: {self.log_level}")
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"LOG_FORMAT must be one of {LOG_FORMATS}, got: {self.log_format}")
        if self.restart_policy not in RESTART_POLICIES:
            raise ValueError(
                f"RESTART_POLICY must be one of {RESTART_POLICIES}, got: {self.restart_policy}"
            )
        if self.max_in_flight < 1:
            raise ValueError(f"MAX_IN_FLIGHT_DELIVERIES must be >= 1, got: {self.max_in_flight}")
        if self.webhook_timeout <= 0:
            raise ValueError(f"WEBHOOK_TIMEOUT_SECONDS must be > 0, got: {self.webhook_timeout}")
        if self.drain_timeout < 0:
            raise ValueError(f"DRAIN_TIMEOUT_SECONDS must be >= 0, got: {self.drain_timeout}")
        if self.backoff_initial <= 0 or self.backoff_max < self.backoff_initial:
            raise ValueError(
                "RESTART_BACKOFF_INITIAL must be > 0 and <= RESTART_BACKOFF_MAX"
            )
        if self.health_port is not None and not 0 < self.health_port < 65536:
            raise ValueError(f"HEALTH_PORT must be a valid port, got: {self.health_port}")
        return self


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_runtime_config(self) -> RuntimeConfig:
        """Get runtime configuration."""
        ...


def _env_number(name: str, default: str, cast):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got: {raw!r}") from exc


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_runtime_config(self) -> RuntimeConfig:
        """Get runtime configuration from environment variables."""
        health_port = os.getenv("HEALTH_PORT")

        return RuntimeConfig(
            config_path=os.getenv("CONFIG_PATH", "/config/config.yaml"),
            secrets_path=os.getenv("SECRETS_PATH", "/secrets"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", "json").lower(),
            max_in_flight=_env_number("MAX_IN_FLIGHT_DELIVERIES", "64", int),
            webhook_timeout=_env_number("WEBHOOK_TIMEOUT_SECONDS", "10", float),
            drain_timeout=_env_number("DRAIN_TIMEOUT_SECONDS", "5", float),
            restart_policy=os.getenv("RESTART_POLICY", "never").lower(),
            backoff_initial=_env_number("RESTART_BACKOFF_INITIAL", "1", float),
            backoff_max=_env_number("RESTART_BACKOFF_MAX", "60", float),
            health_port=_env_number("HEALTH_PORT", health_port, int) if health_port else None,
        ).validate()
