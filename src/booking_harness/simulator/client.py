"""HTTP delivery of simulated messages to the application webhook."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from booking_harness.config import HarnessConfig
from booking_harness.errors import NetworkError
from booking_harness.types import (
    GenuineReply,
    MalformedReply,
    Reply,
    SimulatedMessage,
    SynthesizedFallback,
    utc_now,
)

from .payloads import build_fallback_reply, build_webhook_envelope

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/webhook"
WEBHOOK_HEADERS = {
    "Content-Type": "application/json",
    "X-Test-Mode": "true",
    "User-Agent": "DorTest/1.0",
}


@dataclass(frozen=True, slots=True)
class SendResult:
    """Outcome of one delivery; exactly one of ``reply`` or ``error`` is set."""

    status: int | None = None
    body: Any = None
    reply: Reply | None = None
    error: NetworkError | None = None
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def is_test_mode_reply(self) -> bool:
        return isinstance(self.reply, GenuineReply)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "status": self.status,
            "testMode": self.is_test_mode_reply,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.body is not None:
            data["data"] = self.body
        if self.error is not None:
            data["error"] = str(self.error)
        return data


def decode_reply(body: Any, sent_text: str, greeting: bool = False) -> Reply:
    """Classify a 2xx webhook body into the reply union."""
    if isinstance(body, dict) and body.get("testMode") and body.get("response") is not None:
        response = body["response"]
        if isinstance(response, dict) and response.get("content") is not None:
            return GenuineReply(content=response)
        return MalformedReply(raw=response)
    return SynthesizedFallback(content=build_fallback_reply(sent_text, greeting))


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class WebhookSimulator:
    """Sends simulated provider traffic to the application under test."""

    def __init__(
        self,
        config: HarnessConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._client = client

    @property
    def default_sender(self) -> str:
        return self._config.phone_number

    @property
    def webhook_url(self) -> str:
        return f"{self._config.app_url}{WEBHOOK_PATH}"

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._config.request_timeout) as client:
            yield client

    def envelope_for(self, message: SimulatedMessage) -> dict[str, Any]:
        return build_webhook_envelope(message, self._config.phone_id)

    async def send(
        self, message: SimulatedMessage, *, greeting_fallback: bool = False
    ) -> SendResult:
        """Deliver one message. Transport failures come back as ``SendResult.error``.

        ``greeting_fallback`` picks the onboarding text for the local stand-in
        reply used when the application does not echo one.
        """
        envelope = self.envelope_for(message)
        logger.info(
            "simulator.send",
            extra={"sender": message.sender, "payload": json.dumps(envelope, ensure_ascii=False)},
        )
        try:
            async with self._http() as client:
                response = await client.post(
                    self.webhook_url,
                    json=envelope,
                    headers=WEBHOOK_HEADERS,
                    timeout=self._config.request_timeout,
                )
                response.raise_for_status()
        except httpx.ConnectError as exc:
            return self._failed(NetworkError("ECONNREFUSED", str(exc) or "connection refused"))
        except httpx.TimeoutException as exc:
            return self._failed(NetworkError("ETIMEDOUT", str(exc) or "request timed out"))
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            return self._failed(
                NetworkError(f"HTTP_{status}", f"webhook answered {status}", status=status),
                status=status,
                body=_decode_body(exc.response),
            )
        except httpx.HTTPError as exc:
            return self._failed(NetworkError("ENETWORK", str(exc) or type(exc).__name__))

        body = _decode_body(response)
        reply = decode_reply(body, message.body, greeting_fallback)
        logger.info(
            "simulator.delivered",
            extra={"status": response.status_code, "test_mode": isinstance(reply, GenuineReply)},
        )
        return SendResult(status=response.status_code, body=body, reply=reply)

    def _failed(
        self,
        error: NetworkError,
        status: int | None = None,
        body: Any = None,
    ) -> SendResult:
        logger.warning(
            "simulator.send_failed",
            extra={"url": self.webhook_url, "code": error.code, "error": error.message},
        )
        return SendResult(status=status, body=body, error=error)
