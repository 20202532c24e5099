"""
Configuration module for flyconverge.

Loads configuration from environment variables. Reconcilers never read this
module directly; the CLI host builds clients from it and injects them.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_GRAPHQL_ENDPOINT = "https://api.fly.io/graphql"
DEFAULT_MACHINES_URL = "http://127.0.0.1:4280"
DEFAULT_HTTP_TIMEOUT = 60  # seconds

DEFAULT_DELETE_MAX_RETRIES = 10
DEFAULT_DELETE_POLL_INTERVAL = 5  # seconds


class ConfigurationError(ValueError):
    """Raised when configuration validation fails."""

    pass


@dataclass
class ControlAPIConfig:
    """GraphQL control API configuration."""

    endpoint: str = DEFAULT_GRAPHQL_ENDPOINT
    token: str = field(default="", repr=False)  # Never log token
    timeout: int = DEFAULT_HTTP_TIMEOUT

    def __post_init__(self):
        if self.timeout <= 0:
            raise ConfigurationError(
                f"Control API timeout must be positive, got {self.timeout}"
            )

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            endpoint=os.getenv("FLY_GRAPHQL_ENDPOINT", DEFAULT_GRAPHQL_ENDPOINT),
            token=os.getenv("FLY_API_TOKEN", ""),
            timeout=int(os.getenv("FLY_HTTP_TIMEOUT", str(DEFAULT_HTTP_TIMEOUT))),
        )


@dataclass
class MachinesAPIConfig:
    """Machines API configuration (reached through the wireguard tunnel)."""

    base_url: str = DEFAULT_MACHINES_URL
    token: str = field(default="", repr=False)
    timeout: int = DEFAULT_HTTP_TIMEOUT

    def __post_init__(self):
        if self.timeout <= 0:
            raise ConfigurationError(
                f"Machines API timeout must be positive, got {self.timeout}"
            )
        self.base_url = self.base_url.rstrip("/")

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            base_url=os.getenv("FLY_MACHINES_URL", DEFAULT_MACHINES_URL),
            token=os.getenv("FLY_API_TOKEN", ""),
            timeout=int(os.getenv("FLY_HTTP_TIMEOUT", str(DEFAULT_HTTP_TIMEOUT))),
        )


@dataclass
class LifecycleConfig:
    """Bounds for the machine teardown polling loop."""

    max_retries: int = DEFAULT_DELETE_MAX_RETRIES
    poll_interval: float = DEFAULT_DELETE_POLL_INTERVAL

    def __post_init__(self):
        if self.max_retries < 1:
            raise ConfigurationError(
                f"max_retries must be at least 1, got {self.max_retries}"
            )
        if self.poll_interval < 0:
            raise ConfigurationError(
                f"poll_interval cannot be negative, got {self.poll_interval}"
            )

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            max_retries=int(
                os.getenv("MACHINE_DELETE_MAX_RETRIES", str(DEFAULT_DELETE_MAX_RETRIES))
            ),
            poll_interval=float(
                os.getenv(
                    "MACHINE_DELETE_POLL_INTERVAL", str(DEFAULT_DELETE_POLL_INTERVAL)
                )
            ),
        )


@dataclass
class Config:
    """Main configuration object."""

    control_api: ControlAPIConfig
    machines_api: MachinesAPIConfig
    lifecycle: LifecycleConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        control_api = ControlAPIConfig.from_env()
        if not control_api.token:
            raise ConfigurationError(
                "FLY_API_TOKEN environment variable must be set. "
                "API token cannot be empty."
            )

        return cls(
            control_api=control_api,
            machines_api=MachinesAPIConfig.from_env(),
            lifecycle=LifecycleConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            control_api=ControlAPIConfig(),
            machines_api=MachinesAPIConfig(),
            lifecycle=LifecycleConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
