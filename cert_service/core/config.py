from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_PREFIX_RE = re.compile(r"^[A-Z]+$")


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it’s easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    verify_base_url: str = "http://localhost:5173"
    cert_id_prefix: str = "CERT"
    store_timeout_seconds: float = 5.0

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    port_raw = _getenv("PORT", "8000")
    prefix_raw = _getenv("CERT_ID_PREFIX", "CERT")
    timeout_raw = _getenv("STORE_TIMEOUT_SECONDS", "5")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    # The prefix is part of the public id format: uppercase letters only.
    if not _PREFIX_RE.match(prefix_raw):
        raise ValueError(
            f"CERT_ID_PREFIX must be uppercase letters only (got {prefix_raw!r})"
        )

    try:
        store_timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(
            f"STORE_TIMEOUT_SECONDS must be a number (got {timeout_raw!r})"
        ) from None
    if store_timeout <= 0:
        raise ValueError(
            f"STORE_TIMEOUT_SECONDS must be positive (got {timeout_raw!r})"
        )

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None
    verify_base_url = _getenv("VERIFY_BASE_URL", "http://localhost:5173").rstrip("/")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("1", "true", "yes"),
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        verify_base_url=verify_base_url,
        cert_id_prefix=prefix_raw,
        store_timeout_seconds=store_timeout,
    )


# Optional: module-level singleton so imports are cheap
SETTINGS = load_settings()
