"""Harness configuration loaded from the process environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from booking_harness.errors import ConfigurationError

DOR_APP_DEFAULT_URL = "http://localhost:3000"
HARNESS_DEFAULT_URL = "http://localhost:4000"
HARNESS_DEFAULT_PORT = 4000

TEST_PHONE_NUMBER_DEFAULT = "1234567890"
TEST_PHONE_ID_DEFAULT = "123456789"
TEST_USER_NAME_DEFAULT = "John Doe"

STEP_DELAY_MS_DEFAULT = 1000
SETTLE_DELAY_MS_DEFAULT = 2000
REQUEST_TIMEOUT_SECONDS_DEFAULT = 15.0

STORE_ENV_VARS = ("SUPABASE_URL", "SUPABASE_ANON_KEY")


def _read_str(var_name: str, default: str) -> str:
    value = (os.getenv(var_name) or "").strip()
    return value or default


def _read_url(var_name: str, default: str) -> str:
    return _read_str(var_name, default).rstrip("/")


def _read_positive_float(var_name: str, default: float) -> float:
    raw = os.getenv(var_name)
    if raw is None:
        return default
    try:
        parsed = float(raw)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_non_negative_int(var_name: str, default: int) -> int:
    raw = os.getenv(var_name)
    if raw is None:
        return default
    try:
        parsed = int(raw)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def debug_enabled() -> bool:
    return (os.getenv("DEBUG") or "").strip().lower() in {"1", "true", "yes"}


@dataclass(frozen=True, slots=True)
class HarnessConfig:
    app_url: str = DOR_APP_DEFAULT_URL
    harness_url: str = HARNESS_DEFAULT_URL
    port: int = HARNESS_DEFAULT_PORT
    store_url: str | None = None
    store_key: str | None = None
    phone_number: str = TEST_PHONE_NUMBER_DEFAULT
    phone_id: str = TEST_PHONE_ID_DEFAULT
    user_name: str = TEST_USER_NAME_DEFAULT
    user_id: str = "test-user-id"
    service_id: str = "test-service-id"
    provider_id: str = "test-provider-id"
    step_delay_ms: int = STEP_DELAY_MS_DEFAULT
    settle_delay_ms: int = SETTLE_DELAY_MS_DEFAULT
    request_timeout: float = REQUEST_TIMEOUT_SECONDS_DEFAULT

    @classmethod
    def from_env(cls) -> HarnessConfig:
        """Build config from env with safe fallbacks for every optional value."""
        store_url = (os.getenv("SUPABASE_URL") or "").strip().rstrip("/")
        store_key = (os.getenv("SUPABASE_ANON_KEY") or "").strip()
        return cls(
            app_url=_read_url("DOR_APP_URL", DOR_APP_DEFAULT_URL),
            harness_url=_read_url("HARNESS_URL", HARNESS_DEFAULT_URL),
            port=_read_non_negative_int("HARNESS_PORT", HARNESS_DEFAULT_PORT),
            store_url=store_url or None,
            store_key=store_key or None,
            phone_number=_read_str("TEST_PHONE_NUMBER", TEST_PHONE_NUMBER_DEFAULT),
            phone_id=_read_str("TEST_PHONE_ID", TEST_PHONE_ID_DEFAULT),
            user_name=_read_str("TEST_USER_NAME", TEST_USER_NAME_DEFAULT),
            user_id=_read_str("TEST_USER_ID", "test-user-id"),
            service_id=_read_str("TEST_SERVICE_ID", "test-service-id"),
            provider_id=_read_str("TEST_PROVIDER_ID", "test-provider-id"),
            step_delay_ms=_read_non_negative_int("HARNESS_STEP_DELAY_MS", STEP_DELAY_MS_DEFAULT),
            settle_delay_ms=_read_non_negative_int(
                "HARNESS_SETTLE_DELAY_MS", SETTLE_DELAY_MS_DEFAULT
            ),
            request_timeout=_read_positive_float(
                "HARNESS_REQUEST_TIMEOUT_SECONDS", REQUEST_TIMEOUT_SECONDS_DEFAULT
            ),
        )

    @property
    def step_delay(self) -> float:
        return self.step_delay_ms / 1000

    @property
    def settle_delay(self) -> float:
        return self.settle_delay_ms / 1000

    @property
    def store_configured(self) -> bool:
        return bool(self.store_url and self.store_key)

    def require_store(self) -> tuple[str, str]:
        """Return store url and key, or raise ConfigurationError naming what is missing."""
        missing = [
            name
            for name, value in zip(STORE_ENV_VARS, (self.store_url, self.store_key), strict=True)
            if not value
        ]
        if missing or not self.store_url or not self.store_key:
            raise ConfigurationError(missing)
        return self.store_url, self.store_key
