"""Shared types for the booking harness."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, NotRequired, TypedDict


def utc_now() -> datetime:
    return datetime.now(UTC)


class MessageKind(str, Enum):
    TEXT = "text"
    LIST_REPLY = "list_reply"
    BUTTON_REPLY = "button_reply"


@dataclass(frozen=True, slots=True)
class SimulatedMessage:
    """One inbound message as the simulated user would send it."""

    sender: str
    body: str
    kind: MessageKind = MessageKind.TEXT
    interactive_id: str | None = None
    interactive_title: str | None = None


@dataclass(frozen=True, slots=True)
class GenuineReply:
    """Reply echoed by the application in test mode."""

    content: dict[str, Any]

    @property
    def text(self) -> str:
        value = self.content.get("content")
        if isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False)


@dataclass(frozen=True, slots=True)
class SynthesizedFallback:
    """Locally built stand-in used for logging when no test-mode echo came back."""

    content: dict[str, Any]

    @property
    def text(self) -> str:
        return str(self.content.get("content") or "")


@dataclass(frozen=True, slots=True)
class MalformedReply:
    """Test-mode echo without a textual ``content`` field."""

    raw: Any


Reply = GenuineReply | SynthesizedFallback | MalformedReply


class StepStatus(str, Enum):
    PASSED = "PASSED"
    FAILED = "FAILED"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class StepResult:
    step: str
    status: StepStatus
    reply: dict[str, Any] | None = None
    error: str | None = None
    criteria: dict[str, bool] | None = None
    test_mode: bool = False
    booking: dict[str, Any] | None = None
    message: str | None = None
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def success(self) -> bool:
        return self.status is StepStatus.PASSED

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "test": self.step,
            "status": self.status.value,
            "success": self.success,
            "testMode": self.test_mode,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.reply is not None:
            data["response"] = self.reply
            data["responseContent"] = self.reply.get("content")
        if self.criteria is not None:
            data["criteria"] = self.criteria
        if self.booking is not None:
            data["booking"] = self.booking
        if self.message:
            data["message"] = self.message
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True, slots=True)
class CapturedReply:
    id: int
    timestamp: datetime
    response: dict[str, Any]
    test_mode: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "response": self.response,
            "testMode": self.test_mode,
        }


@dataclass(frozen=True, slots=True)
class RunSummary:
    scenario: str
    results: list[StepResult]
    not_run: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.status is StepStatus.PASSED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status is StepStatus.FAILED)

    @property
    def errors(self) -> int:
        return sum(1 for r in self.results if r.status is StepStatus.ERROR)

    @property
    def success(self) -> bool:
        return self.total > 0 and self.passed == self.total and not self.not_run

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario,
            "success": self.success,
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "errors": self.errors,
            "notRun": list(self.not_run),
            "results": [r.to_dict() for r in self.results],
        }


@dataclass(frozen=True, slots=True)
class VerificationCriteria:
    subject_id: str
    service_id: str
    provider_id: str
    not_before: str


@dataclass(frozen=True, slots=True)
class Verification:
    found: bool
    record: dict[str, Any] | None = None
    reason: str | None = None
    message: str | None = None


class ScenarioStepCase(TypedDict, total=False):
    """A scenario step as written in a JSON case file."""

    name: str
    text: str
    interactive_id: str
    interactive_title: str
    interactive_type: str
    sender: str
    expect: dict[str, Any]


class ScenarioCase(TypedDict):
    """A reusable scenario definition loaded from a JSON case file."""

    name: str
    steps: list[ScenarioStepCase]
    verify: NotRequired[bool]
