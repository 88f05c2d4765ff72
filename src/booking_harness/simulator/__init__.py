"""Messaging provider simulation."""

from .client import SendResult, WebhookSimulator, decode_reply
from .payloads import (
    GREETING_TEXT,
    build_fallback_reply,
    build_webhook_envelope,
    interactive_message,
    text_message,
)

__all__ = [
    "GREETING_TEXT",
    "SendResult",
    "WebhookSimulator",
    "build_fallback_reply",
    "build_webhook_envelope",
    "decode_reply",
    "interactive_message",
    "text_message",
]
