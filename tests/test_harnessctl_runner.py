from pathlib import Path
from typing import Any

import httpx
import pytest
from typer.testing import CliRunner

from booking_harness.harnessctl.main import app

runner = CliRunner()
URL = "http://harness.test"


@pytest.fixture
def calls() -> list[tuple[str, str, str, Any]]:
    return []


def _fake_call(recorded: list, responses: dict[str, Any]):
    def fake_call(method, base_url, path, payload=None, timeout=None):
        recorded.append((method, base_url, path, payload))
        response = responses[path]
        if isinstance(response, Exception):
            raise response
        return response

    return fake_call


def _args(tmp_path: Path, *args: str) -> list[str]:
    return [*args, "--url", URL, "--env-file", str(tmp_path / ".env")]


def test_hi_prints_criteria_and_passes(tmp_path: Path, monkeypatch, calls) -> None:
    result_body = {
        "test": "Hi Response Test",
        "status": "PASSED",
        "criteria": {"welcome": True, "name": True},
        "responseContent": "Welcome! Please enter your name:",
    }
    monkeypatch.setattr(
        "booking_harness.harnessctl.runner._call",
        _fake_call(calls, {"/test/hi": result_body}),
    )

    result = runner.invoke(app, _args(tmp_path, "hi"))

    assert result.exit_code == 0
    assert "Status: PASSED" in result.output
    assert "Welcome! Please enter your name:" in result.output
    assert calls == [("POST", URL, "/test/hi", None)]


def test_hi_failure_exits_non_zero(tmp_path: Path, monkeypatch, calls) -> None:
    monkeypatch.setattr(
        "booking_harness.harnessctl.runner._call",
        _fake_call(calls, {"/test/hi": {"status": "FAILED", "error": "expectation not met"}}),
    )

    result = runner.invoke(app, _args(tmp_path, "hi"))

    assert result.exit_code == 1
    assert "expectation not met" in result.output


def test_connection_refused_explains_how_to_start_server(
    tmp_path: Path, monkeypatch, calls
) -> None:
    refused = httpx.ConnectError("connection refused")
    monkeypatch.setattr(
        "booking_harness.harnessctl.runner._call", _fake_call(calls, {"/test/hi": refused})
    )

    result = runner.invoke(app, _args(tmp_path, "hi"))

    assert result.exit_code == 1
    assert "Connection refused" in result.output
    assert "harnessctl serve" in result.output


def test_all_sends_selected_scenarios(tmp_path: Path, monkeypatch, calls) -> None:
    summary = {
        "total": 1,
        "passed": 1,
        "failed": 0,
        "errors": 0,
        "notRun": [],
        "results": [{"test": "Hi Response Test", "status": "PASSED"}],
    }
    monkeypatch.setattr(
        "booking_harness.harnessctl.runner._call", _fake_call(calls, {"/test/run": summary})
    )

    result = runner.invoke(app, _args(tmp_path, "all", "--scenario", "greeting"))

    assert result.exit_code == 0
    assert calls == [("POST", URL, "/test/run", {"scenarios": ["greeting"]})]
    assert "Hi Response Test: PASSED" in result.output


def test_all_with_aborted_steps_fails(tmp_path: Path, monkeypatch, calls) -> None:
    summary = {
        "total": 1,
        "passed": 0,
        "failed": 0,
        "errors": 1,
        "notRun": ["name_collection"],
        "results": [{"test": "onboarding_start", "status": "ERROR", "error": "ECONNREFUSED: x"}],
    }
    monkeypatch.setattr(
        "booking_harness.harnessctl.runner._call", _fake_call(calls, {"/test/run": summary})
    )

    result = runner.invoke(app, _args(tmp_path, "all"))

    assert result.exit_code == 1
    assert "name_collection: NOT RUN" in result.output
    assert calls[0][3] is None


def test_send_quotes_message_into_path(tmp_path: Path, monkeypatch, calls) -> None:
    body = {
        "test": "Custom message: hello there",
        "result": {"success": True, "testMode": True},
        "capturedResponses": 1,
    }
    monkeypatch.setattr(
        "booking_harness.harnessctl.runner._call",
        _fake_call(calls, {"/send/hello%20there": body}),
    )

    result = runner.invoke(app, _args(tmp_path, "send", "hello there"))

    assert result.exit_code == 0
    assert "Success: True" in result.output


def test_responses_json_output(tmp_path: Path, monkeypatch, calls) -> None:
    data = {"count": 0, "responses": [], "testModeEnabled": True}
    monkeypatch.setattr(
        "booking_harness.harnessctl.runner._call", _fake_call(calls, {"/responses": data})
    )

    result = runner.invoke(app, _args(tmp_path, "responses", "--json"))

    assert result.exit_code == 0
    assert '"count": 0' in result.output


def test_phone_test_hits_both_endpoints(tmp_path: Path, monkeypatch, calls) -> None:
    responses = {
        "/": {"name": "Dor Test Server"},
        "/0535305225/test": {"success": True},
        "/test": {"success": True},
    }
    monkeypatch.setattr(
        "booking_harness.harnessctl.runner._call", _fake_call(calls, responses)
    )

    result = runner.invoke(app, _args(tmp_path, "phone-test"))

    assert result.exit_code == 0
    assert [c[2] for c in calls] == ["/", "/0535305225/test", "/test"]
    assert calls[1][3] == {"message": "1"}


def test_doctor_reports_unreachable_app(tmp_path: Path, monkeypatch) -> None:
    probes = {
        "http://localhost:4000/": (True, "status 200"),
        "http://localhost:3000/": (False, "ECONNREFUSED"),
    }
    monkeypatch.setattr("booking_harness.harnessctl.runner._probe", lambda url: probes[url])
    for name in ("HARNESS_URL", "DOR_APP_URL", "SUPABASE_URL", "SUPABASE_ANON_KEY"):
        monkeypatch.delenv(name, raising=False)

    result = runner.invoke(app, ["doctor", "--env-file", str(tmp_path / ".env")])

    assert result.exit_code == 1
    assert "not running (ECONNREFUSED)" in result.output
    assert "Start the Dor app" in result.output
