"""Sequential scenario execution against the application under test."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

import anyio

from booking_harness.context import RunContext
from booking_harness.errors import MalformedReplyError, StoreQueryError
from booking_harness.simulator import WebhookSimulator
from booking_harness.store import BookingVerifier
from booking_harness.types import (
    MalformedReply,
    RunSummary,
    SimulatedMessage,
    StepResult,
    StepStatus,
    SynthesizedFallback,
    VerificationCriteria,
)

from .cases import VERIFICATION_STEP, Scenario, ScenarioStep

logger = logging.getLogger(__name__)

NO_TEST_MODE_REPLY = "no test-mode reply from application"

Sleep = Callable[[float], Awaitable[None]]


class ScenarioDriver:
    """Runs scenario steps strictly in order and records one result per attempted step.

    A delivery that gets no HTTP response at all aborts the rest of the
    scenario; every other failure is recorded and the run moves on.
    """

    def __init__(
        self,
        simulator: WebhookSimulator,
        context: RunContext,
        *,
        verifier: BookingVerifier | None = None,
        step_delay: float = 1.0,
        settle_delay: float = 2.0,
        sleep: Sleep = anyio.sleep,
    ) -> None:
        self._simulator = simulator
        self._context = context
        self._verifier = verifier
        self._step_delay = step_delay
        self._settle_delay = settle_delay
        self._sleep = sleep

    async def run(self, scenario: Scenario) -> RunSummary:
        logger.info("scenario.started", extra={"scenario": scenario.name})
        results: list[StepResult] = []
        planned = scenario.step_names

        for index, step in enumerate(scenario.steps):
            if index:
                await self._sleep(self._step_delay)
            result, fatal = await self._attempt(step)
            results.append(self._context.record(result))
            if fatal:
                not_run = planned[index + 1 :]
                logger.error(
                    "scenario.aborted",
                    extra={"scenario": scenario.name, "step": step.name, "not_run": not_run},
                )
                return RunSummary(scenario=scenario.name, results=results, not_run=not_run)

        if scenario.verification is not None:
            await self._sleep(self._settle_delay)
            results.append(self._context.record(await self._verify(scenario.verification)))

        summary = RunSummary(scenario=scenario.name, results=results)
        logger.info(
            "scenario.finished",
            extra={
                "scenario": scenario.name,
                "passed": summary.passed,
                "failed": summary.failed,
                "errors": summary.errors,
            },
        )
        return summary

    def _message_for(self, step: ScenarioStep) -> SimulatedMessage:
        sender = step.sender or self._simulator.default_sender
        if step.interactive_id:
            return SimulatedMessage(
                sender=sender,
                body=step.text,
                kind=step.interactive_kind,
                interactive_id=step.interactive_id,
                interactive_title=step.interactive_title or step.interactive_id,
            )
        return SimulatedMessage(sender=sender, body=step.text)

    async def _attempt(self, step: ScenarioStep) -> tuple[StepResult, bool]:
        try:
            return await self._run_step(step)
        except Exception as e:
            logger.exception(f"Scenario step {step.name} crashed: {e}")
            return StepResult(step=step.name, status=StepStatus.ERROR, error=str(e)), False

    async def _run_step(self, step: ScenarioStep) -> tuple[StepResult, bool]:
        sent = await self._simulator.send(self._message_for(step))
        if sent.error is not None:
            return (
                StepResult(step=step.name, status=StepStatus.ERROR, error=str(sent.error)),
                sent.error.is_fatal,
            )

        reply = sent.reply
        self._context.capture_reply(reply)
        if reply is None or isinstance(reply, MalformedReply):
            logger.warning("scenario.step_failed", extra={"step": step.name, "error": "malformed"})
            return (
                StepResult(
                    step=step.name,
                    status=StepStatus.FAILED,
                    error=str(MalformedReplyError()),
                    test_mode=True,
                ),
                False,
            )

        if isinstance(reply, SynthesizedFallback):
            logger.warning(
                "scenario.step_failed", extra={"step": step.name, "error": NO_TEST_MODE_REPLY}
            )
            return (
                StepResult(
                    step=step.name,
                    status=StepStatus.FAILED,
                    reply=reply.content,
                    error=NO_TEST_MODE_REPLY,
                ),
                False,
            )

        outcome = step.expectation.evaluate(reply.text)
        status = StepStatus.PASSED if outcome.ok else StepStatus.FAILED
        if not outcome.ok:
            logger.warning(
                "scenario.step_failed",
                extra={"step": step.name, "error": outcome.describe_failure()},
            )
        return (
            StepResult(
                step=step.name,
                status=status,
                reply=reply.content,
                criteria=outcome.criteria,
                error=None if outcome.ok else outcome.describe_failure(),
                test_mode=True,
            ),
            False,
        )

    async def _verify(self, criteria: VerificationCriteria) -> StepResult:
        if self._verifier is None:
            return StepResult(
                step=VERIFICATION_STEP,
                status=StepStatus.ERROR,
                error="no data store configured for verification",
            )
        try:
            verification = await self._verifier.verify(criteria)
        except StoreQueryError as e:
            return StepResult(step=VERIFICATION_STEP, status=StepStatus.ERROR, error=str(e))
        if not verification.found:
            return StepResult(
                step=VERIFICATION_STEP,
                status=StepStatus.FAILED,
                error=verification.reason or "No booking found",
            )
        return StepResult(
            step=VERIFICATION_STEP,
            status=StepStatus.PASSED,
            booking=verification.record,
            message=verification.message,
        )
