"""
Client configuration.

Holds the connection settings and the scheduler tunables. Values can be passed
explicitly or read from ``CANVAS_*`` environment variables.
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field, replace
from typing import Optional

from .runtime.errors import ConfigurationError


TOKEN_ENV_VAR = "CANVAS_API_TOKEN"

_ENV_FIELDS = {
    "CANVAS_SUBDOMAIN": ("subdomain", str),
    "CANVAS_BASE_URL": ("base_url", str),
    "CANVAS_RATE_LIMIT_BUFFER": ("rate_limit_buffer", float),
    "CANVAS_CALL_LIMIT": ("call_limit", int),
    "CANVAS_MIN_SEND_INTERVAL": ("min_send_interval", float),
    "CANVAS_CHECK_STATUS_INTERVAL": ("check_status_interval", float),
}


@dataclass
class ClientConfig:
    """Configuration for the Canvas client."""

    subdomain: Optional[str] = None
    token: Optional[str] = field(default=None, repr=False)
    base_url: Optional[str] = None
    rate_limit_buffer: float = 300.0
    call_limit: int = 20
    min_send_interval: float = 0.05
    check_status_interval: float = 0.5
    request_timeout: float = 30.0
    max_attempts: int = 3
    max_quota_retries: int = 20
    retry_delay: float = 1.0
    per_page: int = 100
    debug: bool = False
    user_agent: str = "canvas-client-python/1.0.0"

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.token is None:
            self.token = os.environ.get(TOKEN_ENV_VAR)
        if self.rate_limit_buffer < 0:
            raise ValueError("rate_limit_buffer must not be negative")
        if self.call_limit <= 0:
            raise ValueError("call_limit must be positive")
        if self.min_send_interval < 0:
            raise ValueError("min_send_interval must not be negative")
        if self.check_status_interval <= 0:
            raise ValueError("check_status_interval must be positive")
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if self.max_quota_retries < 0:
            raise ValueError("max_quota_retries must not be negative")
        if not 1 <= self.per_page <= 100:
            raise ValueError("per_page must be between 1 and 100")

    @classmethod
    def from_env(cls, **overrides) -> "ClientConfig":
        """
        Build a configuration from ``CANVAS_*`` environment variables.

        Args:
            **overrides: Explicit values that win over the environment

        Returns:
            Populated ClientConfig
        """
        values = {}
        for env_name, (attr, cast) in _ENV_FIELDS.items():
            raw = os.environ.get(env_name)
            if raw is None or raw == "":
                continue
            try:
                values[attr] = cast(raw)
            except ValueError:
                raise ConfigurationError(f"Invalid value for {env_name}: {raw!r}")
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def with_overrides(self, **overrides) -> "ClientConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **overrides)

    def resolved_base_url(self) -> str:
        """Resolve the API root, e.g. ``https://school.instructure.com/api/v1``."""
        if self.base_url:
            return self.base_url.rstrip("/")
        if not self.subdomain:
            raise ConfigurationError("Either subdomain or base_url must be configured")
        host = self.subdomain if "." in self.subdomain else f"{self.subdomain}.instructure.com"
        return f"https://{host}/api/v1"
