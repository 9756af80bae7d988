"""Environment-driven settings shared by the proxy and the client pipeline."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_UPSTREAM_URL = "https://brewguard.onrender.com"
DEFAULT_PROXY_URL = "http://localhost:8000"
DETECT_PATH = "/api/detect"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    upstream_url: str = DEFAULT_UPSTREAM_URL
    upstream_timeout: float = 55.0
    proxy_url: str = DEFAULT_PROXY_URL
    client_timeout: float = 60.0
    environment: str = "development"
    debug: bool = False
    log_endpoint: Optional[str] = None

    def __post_init__(self) -> None:
        if self.upstream_timeout <= 0:
            raise ValueError("upstream_timeout must be positive")
        # The proxy must give up first so its 504 reaches the client.
        if self.upstream_timeout >= self.client_timeout:
            raise ValueError("upstream_timeout must be strictly less than client_timeout")

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def upstream_detect_url(self) -> str:
        return build_endpoint(self.upstream_url)

    @property
    def proxy_detect_url(self) -> str:
        return build_endpoint(self.proxy_url)


def build_endpoint(base_url: str, path: str = DETECT_PATH) -> str:
    """Join a base URL and an API path without doubling slashes."""
    return f"{base_url.rstrip('/')}{path}"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def load_settings() -> Settings:
    """Construct settings from ``BREWGUARD_*`` environment variables."""
    return Settings(
        upstream_url=os.getenv("BREWGUARD_UPSTREAM_URL", DEFAULT_UPSTREAM_URL),
        upstream_timeout=_float_env("BREWGUARD_UPSTREAM_TIMEOUT", 55.0),
        proxy_url=os.getenv("BREWGUARD_PROXY_URL", DEFAULT_PROXY_URL),
        client_timeout=_float_env("BREWGUARD_CLIENT_TIMEOUT", 60.0),
        environment=os.getenv("BREWGUARD_ENV", "development"),
        debug=os.getenv("BREWGUARD_DEBUG", "").strip().lower() in _TRUTHY,
        log_endpoint=os.getenv("BREWGUARD_LOG_ENDPOINT") or None,
    )


__all__ = ["DETECT_PATH", "Settings", "build_endpoint", "load_settings"]
