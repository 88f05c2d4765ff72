"""In-memory run state: captured replies and the step result log."""

from __future__ import annotations

import itertools
import json
import logging
from typing import Any

from booking_harness.types import (
    CapturedReply,
    GenuineReply,
    MalformedReply,
    Reply,
    StepResult,
    utc_now,
)

logger = logging.getLogger(__name__)


class RunContext:
    """Owns everything one harness process records about its runs.

    Both lists only grow until ``clear()`` is called explicitly.
    """

    def __init__(self) -> None:
        self._captures: list[CapturedReply] = []
        self._results: list[StepResult] = []
        self._ids = itertools.count(1)

    @property
    def captures(self) -> list[CapturedReply]:
        return list(self._captures)

    @property
    def results(self) -> list[StepResult]:
        return list(self._results)

    def capture(self, response: dict[str, Any], test_mode: bool) -> CapturedReply:
        timestamp = utc_now()
        if self._captures and timestamp < self._captures[-1].timestamp:
            timestamp = self._captures[-1].timestamp
        captured = CapturedReply(
            id=next(self._ids),
            timestamp=timestamp,
            response=dict(response),
            test_mode=test_mode,
        )
        self._captures.append(captured)
        logger.debug(
            "context.reply_captured",
            extra={"reply": json.dumps(response, ensure_ascii=False), "test_mode": test_mode},
        )
        return captured

    def capture_reply(self, reply: Reply | None) -> CapturedReply | None:
        """Capture whatever structured content a decoded reply carries."""
        if isinstance(reply, MalformedReply):
            raw = reply.raw if isinstance(reply.raw, dict) else {"raw": reply.raw}
            return self.capture(raw, test_mode=True)
        if reply is None:
            return None
        return self.capture(reply.content, test_mode=isinstance(reply, GenuineReply))

    def record(self, result: StepResult) -> StepResult:
        self._results.append(result)
        return result

    def clear_captures(self) -> None:
        self._captures.clear()

    def clear(self) -> None:
        self._captures.clear()
        self._results.clear()
