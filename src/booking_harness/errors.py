"""Error types raised or carried by the harness."""

from __future__ import annotations


class HarnessError(Exception):
    """Base class for harness errors."""


class ConfigurationError(HarnessError):
    """A required endpoint or credential is missing."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing required environment variables: {', '.join(self.missing)}")


class NetworkError(HarnessError):
    """Delivery to the application under test failed.

    ``status`` is None when no HTTP response was received at all; such
    failures are fatal to a running scenario.
    """

    def __init__(self, code: str, message: str, status: int | None = None) -> None:
        self.code = code
        self.message = message
        self.status = status
        super().__init__(f"{code}: {message}")

    @property
    def is_fatal(self) -> bool:
        return self.status is None


class MalformedReplyError(HarnessError):
    """A test-mode reply did not carry the expected content shape."""

    def __init__(self, detail: str = "malformed reply") -> None:
        super().__init__(detail)


class StoreQueryError(HarnessError):
    """The booking verification query failed."""
