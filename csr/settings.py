from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_str(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


@dataclass(frozen=True)
class CatalogConfig:
    """How to reach a catalog agent. Shared by every pooled connection."""

    port: int = 8500
    token: str | None = None
    ssl_enabled: bool = False
    ssl_verify: bool = True
    auth_username: str | None = None
    auth_password: str | None = None
    timeout_s: int = 10

    @property
    def scheme(self) -> str:
        return "https" if self.ssl_enabled else "http"

    @property
    def auth_enabled(self) -> bool:
        return bool(self.auth_username)

    @classmethod
    def from_env(cls) -> "CatalogConfig":
        return cls(
            port=_env_int("CSR_CONSUL_PORT", 8500),
            token=_env_str("CSR_CONSUL_TOKEN"),
            ssl_enabled=_env_bool("CSR_CONSUL_SSL", False),
            ssl_verify=_env_bool("CSR_CONSUL_SSL_VERIFY", True),
            auth_username=_env_str("CSR_CONSUL_AUTH_USER"),
            auth_password=_env_str("CSR_CONSUL_AUTH_PASSWORD"),
            timeout_s=_env_int("CSR_CONSUL_TIMEOUT_S", 10),
        )


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = "csr.db"
    poll_interval_s: int = 30
    catalog: CatalogConfig = field(default_factory=CatalogConfig)

    # Desired state feed (optional). Without it passes are only triggered via the API.
    tasks_url: str | None = None

    # API basic auth (optional)
    api_user: str | None = None
    api_password: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            db_path=os.getenv("CSR_DB_PATH", "csr.db"),
            poll_interval_s=_env_int("CSR_POLL_INTERVAL_S", 30),
            catalog=CatalogConfig.from_env(),
            tasks_url=_env_str("CSR_TASKS_URL"),
            api_user=_env_str("CSR_API_USER"),
            api_password=_env_str("CSR_API_PASSWORD"),
        )
