"""Provider-shaped message and webhook envelope builders."""

from __future__ import annotations

from typing import Any

from booking_harness.types import MessageKind, SimulatedMessage

GREETING_TEXT = "Hi"
FALLBACK_BUSINESS = "Test Hair Salon"
GREETING_FALLBACK_CONTENT = (
    "👋 Welcome to Test Hair Salon!\n\n"
    "For first-time users, we need a few details to get started.\n\n"
    "Please enter your full name:"
)


def text_message(sender: str, body: str) -> SimulatedMessage:
    return SimulatedMessage(sender=sender, body=body)


def interactive_message(
    sender: str,
    interactive_id: str,
    title: str | None = None,
    kind: MessageKind = MessageKind.LIST_REPLY,
) -> SimulatedMessage:
    if kind is MessageKind.TEXT:
        raise ValueError("interactive messages need a list_reply or button_reply kind")
    return SimulatedMessage(
        sender=sender,
        body=title or interactive_id,
        kind=kind,
        interactive_id=interactive_id,
        interactive_title=title or interactive_id,
    )


def build_message_payload(message: SimulatedMessage) -> dict[str, Any]:
    if message.kind is MessageKind.TEXT:
        return {
            "from": message.sender,
            "type": "text",
            "text": {"body": message.body},
        }
    interactive_id = message.interactive_id or message.body
    return {
        "from": message.sender,
        "type": "interactive",
        "interactive": {
            "type": message.kind.value,
            message.kind.value: {
                "id": interactive_id,
                "title": message.interactive_title or interactive_id,
            },
        },
    }


def build_webhook_envelope(message: SimulatedMessage, phone_id: str) -> dict[str, Any]:
    return {
        "entry": [
            {
                "changes": [
                    {
                        "value": {
                            "messages": [build_message_payload(message)],
                            "metadata": {"phone_number_id": phone_id},
                        }
                    }
                ]
            }
        ]
    }


def build_fallback_reply(text: str, greeting: bool = False) -> dict[str, Any]:
    if greeting:
        content = GREETING_FALLBACK_CONTENT
    else:
        content = f"Response to: {text}"
    return {"type": "text", "content": content, "business": FALLBACK_BUSINESS}
