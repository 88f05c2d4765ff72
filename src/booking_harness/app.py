"""Litestar application entrypoint for the messaging provider simulator."""

import logging
from typing import Any

import anyio
from litestar import Litestar, Request, Response, get, post
from litestar.datastructures import State
from litestar.exceptions import ClientException, SerializationException
from litestar.status_codes import HTTP_200_OK, HTTP_503_SERVICE_UNAVAILABLE

from booking_harness.config import HarnessConfig
from booking_harness.context import RunContext
from booking_harness.errors import ConfigurationError
from booking_harness.scenario import ScenarioDriver, builtin_scenarios
from booking_harness.simulator import GREETING_TEXT, SendResult, WebhookSimulator, text_message
from booking_harness.store import BookingVerifier
from booking_harness.types import GenuineReply, RunSummary, StepStatus, utc_now

logger = logging.getLogger(__name__)

DEFAULT_CHECKS = ["greeting"]


def _timestamp() -> str:
    return utc_now().isoformat()


def _driver(state: State) -> ScenarioDriver:
    config: HarnessConfig = state.config
    return ScenarioDriver(
        state.simulator,
        state.context,
        verifier=state.verifier,
        step_delay=config.step_delay,
        settle_delay=config.settle_delay,
        sleep=state.sleep,
    )


async def _deliver(
    state: State, text: str, sender: str | None = None, greeting: bool = False
) -> SendResult:
    simulator: WebhookSimulator = state.simulator
    message = text_message(sender or simulator.default_sender, text)
    result = await simulator.send(message, greeting_fallback=greeting)
    state.context.capture_reply(result.reply)
    return result


async def _message_from_body(request: Request) -> str:
    try:
        payload = await request.json()
    except SerializationException as e:
        raise ClientException(detail=f"Invalid JSON body: {e}") from e
    if isinstance(payload, dict):
        for key in ("message", "text"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return GREETING_TEXT


def _clean_test_response(result: SendResult, text: str, captured: int) -> dict[str, Any]:
    reply = result.reply
    response: dict[str, Any] = {
        "success": result.success,
        "test": f"Message: {text}",
        "dorAppResponse": reply.content if isinstance(reply, GenuineReply) else None,
        "capturedResponses": captured,
        "timestamp": _timestamp(),
    }
    if result.error is not None:
        response["error"] = str(result.error)
    return response


@get("/")
async def info(state: State) -> dict[str, Any]:
    """Describe the simulator and list its endpoints."""
    config: HarnessConfig = state.config
    return {
        "name": "Dor Test Server",
        "description": "WhatsApp simulation server for testing Dor app",
        "port": config.port,
        "dorAppUrl": config.app_url,
        "endpoints": {
            "/send/hi": 'Send "Hi" message to Dor app',
            "/send/:message": "Send custom message to Dor app",
            "/responses": "Get all captured responses",
            "/:phoneNumber/test": (
                'Test endpoint with phone number (POST with body: {message: "hi"})'
            ),
            "/test": (
                'Simple test endpoint (POST with body: {message: "hi"}) - backward compatibility'
            ),
            "/test/hi": 'Test "Hi" response contains welcome message',
            "/test/clear": "Clear all test data",
            "/test/results": "Get all test results",
            "/test/run": "Run all tests",
        },
        "scenarios": sorted(builtin_scenarios(config)),
    }


@post("/send/hi", status_code=HTTP_200_OK)
async def send_hi(state: State) -> dict[str, Any]:
    result = await _deliver(state, GREETING_TEXT, greeting=True)
    return {
        "test": "Hi message",
        "result": result.to_dict(),
        "capturedResponses": len(state.context.captures),
    }


@post("/send/{message:str}", status_code=HTTP_200_OK)
async def send_message(state: State, message: str) -> dict[str, Any]:
    result = await _deliver(state, message)
    return {
        "test": f"Custom message: {message}",
        "result": result.to_dict(),
        "capturedResponses": len(state.context.captures),
    }


@post("/{phone_number:str}/test", status_code=HTTP_200_OK)
async def send_as_phone(state: State, request: Request, phone_number: str) -> dict[str, Any]:
    """Send a message as a specific simulated sender."""
    text = await _message_from_body(request)
    result = await _deliver(state, text, sender=phone_number)
    response = _clean_test_response(result, text, len(state.context.captures))
    response["phoneNumber"] = phone_number
    return response


@post("/test", status_code=HTTP_200_OK)
async def send_as_default(state: State, request: Request) -> dict[str, Any]:
    text = await _message_from_body(request)
    result = await _deliver(state, text)
    return _clean_test_response(result, text, len(state.context.captures))


@get("/responses")
async def responses(state: State) -> dict[str, Any]:
    captures = state.context.captures
    return {
        "count": len(captures),
        "responses": [c.to_dict() for c in captures],
        "testModeEnabled": True,
    }


@post("/test/hi", status_code=HTTP_200_OK)
async def run_hi_check(state: State) -> dict[str, Any]:
    """Check that a greeting starts onboarding."""
    state.context.clear_captures()
    config: HarnessConfig = state.config
    summary = await _driver(state).run(builtin_scenarios(config)["greeting"])
    return summary.results[0].to_dict()


@post("/test/clear", status_code=HTTP_200_OK)
async def clear_test_data(state: State) -> dict[str, Any]:
    state.context.clear()
    return {"message": "All test data cleared", "timestamp": _timestamp()}


@get("/test/results")
async def list_test_results(state: State) -> dict[str, Any]:
    results = state.context.results
    return {"count": len(results), "results": [r.to_dict() for r in results]}


@post("/test/run", status_code=HTTP_200_OK)
async def run_checks(state: State, request: Request) -> dict[str, Any]:
    """Run the named checks one after another and summarize them."""
    try:
        payload = await request.json()
    except SerializationException as e:
        raise ClientException(detail=f"Invalid JSON body: {e}") from e
    names = payload.get("scenarios") if isinstance(payload, dict) else None
    if not isinstance(names, list) or not names:
        names = DEFAULT_CHECKS
    if not all(isinstance(n, str) for n in names):
        raise ClientException(detail="'scenarios' must be a list of scenario names")

    config: HarnessConfig = state.config
    available = builtin_scenarios(config)
    unknown = [n for n in names if n not in available]
    if unknown:
        raise ClientException(
            detail=f"Unknown scenario(s): {', '.join(map(str, unknown))}. "
            f"Available: {', '.join(sorted(available))}"
        )
    selected = [available[n] for n in names]
    if state.verifier is None and any(s.verification is not None for s in selected):
        config.require_store()

    state.context.clear()
    driver = _driver(state)
    summaries: list[RunSummary] = []
    for index, scenario in enumerate(selected):
        if index:
            await state.sleep(config.step_delay)
        summary = await driver.run(scenario)
        summaries.append(summary)
        logger.info(
            "app.check_finished",
            extra={"scenario": scenario.name, "passed": summary.success},
        )

    results = [r for s in summaries for r in s.results]
    return {
        "total": len(results),
        "passed": sum(1 for r in results if r.status is StepStatus.PASSED),
        "failed": sum(1 for r in results if r.status is StepStatus.FAILED),
        "errors": sum(1 for r in results if r.status is StepStatus.ERROR),
        "notRun": [name for s in summaries for name in s.not_run],
        "results": [r.to_dict() for r in results],
    }


def _configuration_error_handler(_: Request, exc: ConfigurationError) -> Response:
    logger.error("app.configuration_error", extra={"error": str(exc)})
    return Response(
        content={"error": str(exc), "missing": exc.missing},
        status_code=HTTP_503_SERVICE_UNAVAILABLE,
    )


def create_app(
    config: HarnessConfig | None = None,
    *,
    simulator: WebhookSimulator | None = None,
    verifier: BookingVerifier | None = None,
    context: RunContext | None = None,
    sleep: Any = anyio.sleep,
) -> Litestar:
    config = config or HarnessConfig.from_env()
    if verifier is None and config.store_configured:
        verifier = BookingVerifier(config)
    state = State(
        {
            "config": config,
            "simulator": simulator or WebhookSimulator(config),
            "verifier": verifier,
            "context": context or RunContext(),
            "sleep": sleep,
        }
    )
    return Litestar(
        route_handlers=[
            info,
            send_hi,
            send_message,
            send_as_phone,
            send_as_default,
            responses,
            run_hi_check,
            clear_test_data,
            list_test_results,
            run_checks,
        ],
        state=state,
        exception_handlers={ConfigurationError: _configuration_error_handler},
        debug=False,
    )


app = create_app()
