from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import os
from typing import Literal

from dotenv import load_dotenv

from plaidsync.infra.clients.plaid import PLAID_ENV_MAP, PlaidClient, PlaidEnv
from plaidsync.storage.stores import DEFAULT_WEBHOOK_LOG_LIMIT
from plaidsync.sync.scheduler import DEFAULT_SETTLE_SECONDS

Features = Literal["transactions", "auth"]

DEFAULT_PORT = 3001


class ConfigError(ValueError):
    """Raised when the process environment holds an unusable setting."""


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Server configuration loaded at process startup."""

    plaid_client_id: str
    plaid_secret: str
    plaid_env: PlaidEnv = "sandbox"
    plaid_client_name: str = "plaidsync"
    plaid_webhook_url: str | None = None
    features: Features = "transactions"
    settle_seconds: float = DEFAULT_SETTLE_SECONDS
    webhook_log_limit: int = DEFAULT_WEBHOOK_LOG_LIMIT
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    allowed_origins: tuple[str, ...] = field(
        default_factory=lambda: ("http://localhost:3000",)
    )

    @property
    def transactions_enabled(self) -> bool:
        return self.features == "transactions"

    def build_plaid_client(self) -> PlaidClient:
        return PlaidClient(
            client_id=self.plaid_client_id,
            secret=self.plaid_secret,
            env=self.plaid_env,
            client_name=self.plaid_client_name,
        )


def _require_env(env: Mapping[str, str], name: str) -> str:
    value = env.get(name, "").strip()
    if not value:
        raise ConfigError(f"Missing required environment variable: {name}")
    return value


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ConfigError(f"{name} must not be negative")
    return value


def _int_env(env: Mapping[str, str], name: str, default: int, *, minimum: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ConfigError(f"{name} must be at least {minimum}")
    return value


def _secret_from_env(env: Mapping[str, str], plaid_env: PlaidEnv) -> str:
    # PLAID_SANDBOX_SECRET style takes precedence over a single PLAID_SECRET.
    scoped = env.get(f"PLAID_{plaid_env.upper()}_SECRET", "").strip()
    if scoped:
        return scoped
    generic = env.get("PLAID_SECRET", "").strip()
    if generic:
        return generic
    raise ConfigError(
        f"Missing required environment variable: PLAID_{plaid_env.upper()}_SECRET "
        "(or PLAID_SECRET)"
    )


def load_config_from_env(env: Mapping[str, str] | None = None) -> AppConfig:
    """Load server config from the environment (and .env) and validate it."""
    if env is None:
        load_dotenv(override=False)
        env = os.environ

    env_str = env.get("PLAID_ENV", "sandbox").strip().lower()
    if env_str not in PLAID_ENV_MAP:
        raise ConfigError(
            f"Invalid PLAID_ENV={env_str!r}. "
            "Expected one of: sandbox, development, production."
        )
    plaid_env: PlaidEnv = env_str  # type: ignore[assignment]

    features = env.get("PLAIDSYNC_FEATURES", "transactions").strip().lower()
    if features not in {"transactions", "auth"}:
        raise ConfigError("PLAIDSYNC_FEATURES must be one of: transactions, auth")

    origins = tuple(
        origin.strip()
        for origin in env.get("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
        if origin.strip()
    )

    return AppConfig(
        plaid_client_id=_require_env(env, "PLAID_CLIENT_ID"),
        plaid_secret=_secret_from_env(env, plaid_env),
        plaid_env=plaid_env,
        plaid_client_name=env.get("PLAID_CLIENT_NAME", "").strip() or "plaidsync",
        plaid_webhook_url=env.get("PLAID_WEBHOOK_URL", "").strip() or None,
        features=features,  # type: ignore[arg-type]
        settle_seconds=_float_env(
            env, "PLAIDSYNC_SETTLE_SECONDS", DEFAULT_SETTLE_SECONDS
        ),
        webhook_log_limit=_int_env(
            env, "PLAIDSYNC_WEBHOOK_LOG_LIMIT", DEFAULT_WEBHOOK_LOG_LIMIT, minimum=1
        ),
        log_level=env.get("PLAIDSYNC_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        host=env.get("HOST", "").strip() or "127.0.0.1",
        port=_int_env(env, "PORT", DEFAULT_PORT, minimum=1),
        allowed_origins=origins,
    )
