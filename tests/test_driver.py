import json

import httpx
import pytest

from booking_harness.config import HarnessConfig
from booking_harness.context import RunContext
from booking_harness.errors import StoreQueryError
from booking_harness.scenario import (
    NO_TEST_MODE_REPLY,
    VERIFICATION_STEP,
    Custom,
    Scenario,
    ScenarioDriver,
    ScenarioStep,
    contains_any,
    booking_scenario,
    greeting_scenario,
)
from booking_harness.simulator import WebhookSimulator
from booking_harness.types import StepStatus, Verification

CONFIG = HarnessConfig(app_url="http://dor.test")

BOOKING_REPLIES = [
    "Welcome to Test Hair Salon! Please enter your full name:",
    "Thanks John! Main menu: 1. Book an appointment",
    "Choose a service: 1. Haircut",
    "Choose a location: 1. Downtown",
    "Choose a provider: 1. Dana",
    "Choose a date: 1. Tomorrow",
    "Pick a time slot: 1. 10:00",
    "Your appointment is confirmed!",
]


def _echo(content: str) -> httpx.Response:
    return httpx.Response(
        200, json={"testMode": True, "response": {"type": "text", "content": content}}
    )


def _scripted(replies: list, sent: list[str] | None = None):
    queue = list(replies)

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        message = body["entry"][0]["changes"][0]["value"]["messages"][0]
        if sent is not None:
            sent.append(message["text"]["body"])
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return _echo(item)

    return handler


class FakeVerifier:
    def __init__(self, verification: Verification | None = None, error: Exception | None = None):
        self.verification = verification
        self.error = error
        self.calls: list = []

    async def verify(self, criteria):
        self.calls.append(criteria)
        if self.error is not None:
            raise self.error
        return self.verification


def _driver(handler, context: RunContext, verifier=None, sleeps: list[float] | None = None):
    async def fake_sleep(seconds: float) -> None:
        if sleeps is not None:
            sleeps.append(seconds)

    simulator = WebhookSimulator(
        CONFIG, client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    return ScenarioDriver(simulator, context, verifier=verifier, sleep=fake_sleep)


@pytest.mark.asyncio
async def test_greeting_passes_on_welcome_reply() -> None:
    context = RunContext()
    driver = _driver(_scripted(["Welcome! Please enter your name:"]), context)

    summary = await driver.run(greeting_scenario())

    assert summary.success
    assert summary.results[0].step == "Hi Response Test"
    assert summary.results[0].criteria == {"welcome": True, "name": True}
    assert summary.results[0].test_mode
    assert len(context.captures) == 1
    assert context.captures[0].test_mode


@pytest.mark.asyncio
async def test_greeting_fails_when_name_is_not_requested() -> None:
    driver = _driver(_scripted(["Welcome back!"]), RunContext())

    summary = await driver.run(greeting_scenario())

    result = summary.results[0]
    assert result.status is StepStatus.FAILED
    assert result.criteria == {"welcome": True, "name": False}
    assert "name" in (result.error or "")


@pytest.mark.asyncio
async def test_full_booking_flow_passes_and_verifies() -> None:
    sent: list[str] = []
    sleeps: list[float] = []
    context = RunContext()
    verifier = FakeVerifier(Verification(found=True, record={"appointment_id": "a-1"}))
    driver = _driver(_scripted(BOOKING_REPLIES, sent), context, verifier, sleeps)

    summary = await driver.run(booking_scenario(CONFIG))

    assert summary.success
    assert summary.total == 9
    assert sent == ["Hi", "John Doe", "1", "1", "1", "1", "1", "1"]
    assert summary.results[-1].step == VERIFICATION_STEP
    assert summary.results[-1].booking == {"appointment_id": "a-1"}
    assert verifier.calls[0].subject_id == CONFIG.user_id
    assert sleeps == [1.0] * 7 + [2.0]
    assert [r.step for r in context.results] == [r.step for r in summary.results]
    assert len(context.captures) == 8


@pytest.mark.asyncio
async def test_connection_refused_aborts_remaining_steps() -> None:
    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    replies = BOOKING_REPLIES[:2]
    queue_handler = _scripted(replies)
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 3:
            return refused(request)
        return queue_handler(request)

    verifier = FakeVerifier(Verification(found=True, record={}))
    context = RunContext()
    scenario = booking_scenario(CONFIG)

    summary = await _driver(handler, context, verifier).run(scenario)

    assert summary.total == 3
    assert [r.status for r in summary.results] == [
        StepStatus.PASSED,
        StepStatus.PASSED,
        StepStatus.ERROR,
    ]
    assert "ECONNREFUSED" in (summary.results[2].error or "")
    assert summary.not_run == scenario.step_names[3:]
    assert summary.not_run[-1] == VERIFICATION_STEP
    assert not summary.success
    assert verifier.calls == []
    assert len(context.results) == 3


@pytest.mark.asyncio
async def test_http_error_is_recorded_and_run_continues() -> None:
    replies = [httpx.Response(500, json={"error": "boom"}), *BOOKING_REPLIES[1:]]
    verifier = FakeVerifier(Verification(found=True, record={}))

    summary = await _driver(_scripted(replies), RunContext(), verifier).run(
        booking_scenario(CONFIG)
    )

    assert summary.total == 9
    assert summary.results[0].status is StepStatus.ERROR
    assert "HTTP_500" in (summary.results[0].error or "")
    assert summary.not_run == []
    assert summary.errors == 1
    assert summary.passed == 8


@pytest.mark.asyncio
async def test_reply_without_content_fails_as_malformed() -> None:
    malformed = httpx.Response(200, json={"testMode": True, "response": {"type": "text"}})

    summary = await _driver(_scripted([malformed]), RunContext()).run(greeting_scenario())

    result = summary.results[0]
    assert result.status is StepStatus.FAILED
    assert result.error == "malformed reply"


@pytest.mark.asyncio
async def test_fallback_reply_never_passes() -> None:
    context = RunContext()
    no_echo = httpx.Response(200, json={"status": "received"})

    summary = await _driver(_scripted([no_echo]), context).run(greeting_scenario())

    result = summary.results[0]
    assert result.status is StepStatus.FAILED
    assert result.error == NO_TEST_MODE_REPLY
    assert not result.test_mode
    assert (result.reply or {}).get("content") == "Response to: Hi"
    assert not context.captures[0].test_mode


@pytest.mark.asyncio
async def test_verification_not_found_fails() -> None:
    verifier = FakeVerifier(Verification(found=False, reason="No booking found"))

    summary = await _driver(_scripted(BOOKING_REPLIES), RunContext(), verifier).run(
        booking_scenario(CONFIG)
    )

    result = summary.results[-1]
    assert result.step == VERIFICATION_STEP
    assert result.status is StepStatus.FAILED
    assert result.error == "No booking found"


@pytest.mark.asyncio
async def test_verification_query_error_is_an_error() -> None:
    verifier = FakeVerifier(error=StoreQueryError("appointments query failed with 401: denied"))

    summary = await _driver(_scripted(BOOKING_REPLIES), RunContext(), verifier).run(
        booking_scenario(CONFIG)
    )

    result = summary.results[-1]
    assert result.status is StepStatus.ERROR
    assert "401" in (result.error or "")


@pytest.mark.asyncio
async def test_verification_without_store_is_an_error() -> None:
    summary = await _driver(_scripted(BOOKING_REPLIES), RunContext()).run(
        booking_scenario(CONFIG)
    )

    assert summary.results[-1].status is StepStatus.ERROR
    assert summary.passed == 8


@pytest.mark.asyncio
async def test_no_verify_booking_skips_verification() -> None:
    summary = await _driver(_scripted(BOOKING_REPLIES), RunContext()).run(
        booking_scenario(CONFIG, verify=False)
    )

    assert summary.success
    assert summary.total == 8


@pytest.mark.asyncio
async def test_non_dict_echo_is_captured_and_fails() -> None:
    context = RunContext()
    odd = httpx.Response(200, json={"testMode": True, "response": "oops"})

    summary = await _driver(_scripted([odd]), context).run(greeting_scenario())

    assert summary.results[0].status is StepStatus.FAILED
    assert summary.results[0].error == "malformed reply"
    assert len(context.captures) == 1
    assert context.captures[0].response == {"raw": "oops"}
    assert context.captures[0].test_mode


@pytest.mark.asyncio
async def test_interactive_step_sends_list_reply() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append(body["entry"][0]["changes"][0]["value"]["messages"][0])
        return _echo("Choose a location: 1. Downtown")

    scenario = Scenario(
        name="pick",
        steps=(
            ScenarioStep(
                "pick_service",
                "Haircut",
                contains_any("location"),
                interactive_id="svc_1",
                interactive_title="Haircut",
            ),
        ),
    )

    summary = await _driver(handler, RunContext()).run(scenario)

    assert summary.success
    assert seen == [
        {
            "from": CONFIG.phone_number,
            "type": "interactive",
            "interactive": {
                "type": "list_reply",
                "list_reply": {"id": "svc_1", "title": "Haircut"},
            },
        }
    ]


@pytest.mark.asyncio
async def test_raising_predicate_is_an_error_and_run_continues() -> None:
    def explode(text: str) -> bool:
        raise RuntimeError("predicate blew up")

    scenario = Scenario(
        name="checks",
        steps=(
            ScenarioStep("broken_check", "Hi", Custom(explode, description="explodes")),
            ScenarioStep("menu", "John Doe", contains_any("menu")),
        ),
    )

    summary = await _driver(
        _scripted(["Welcome!", "Main menu"]), RunContext()
    ).run(scenario)

    assert [r.status for r in summary.results] == [StepStatus.ERROR, StepStatus.PASSED]
    assert "predicate blew up" in (summary.results[0].error or "")
    assert summary.not_run == []


@pytest.mark.asyncio
async def test_found_booking_carries_confirmation_message() -> None:
    verifier = FakeVerifier(
        Verification(
            found=True,
            record={"appointment_id": "a-1"},
            message="Booking confirmed: Haircut with Dana on 2026-10-19T10:00:00+00:00",
        )
    )

    summary = await _driver(_scripted(BOOKING_REPLIES), RunContext(), verifier).run(
        booking_scenario(CONFIG)
    )

    result = summary.results[-1]
    assert result.message == "Booking confirmed: Haircut with Dana on 2026-10-19T10:00:00+00:00"
    assert result.to_dict()["message"] == result.message
