"""Commands that talk to a running harness server."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Any
from urllib.parse import quote

import httpx
import typer
from dotenv import load_dotenv

from booking_harness.config import HarnessConfig

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 15.0
PROBE_TIMEOUT_SECONDS = 5.0
RULE = "─" * 50

UrlOption = Annotated[
    str | None, typer.Option("--url", help="Harness server base URL (defaults to HARNESS_URL).")
]
JsonOption = Annotated[bool, typer.Option("--json", help="Print raw JSON output.")]
EnvFileOption = Annotated[
    Path, typer.Option("--env-file", help="Load environment variables from this .env file.")
]


def _config(env_file: Path) -> HarnessConfig:
    load_dotenv(dotenv_path=env_file, override=False, encoding="utf-8")
    return HarnessConfig.from_env()


def _base_url(url: str | None, env_file: Path) -> str:
    return (url or _config(env_file).harness_url).rstrip("/")


def _call(
    method: str,
    base_url: str,
    path: str,
    payload: dict[str, Any] | None = None,
    timeout: float | None = REQUEST_TIMEOUT_SECONDS,
) -> dict[str, Any]:
    logger.debug("harnessctl.request", extra={"method": method, "url": f"{base_url}{path}"})
    with httpx.Client(timeout=timeout) as client:
        response = client.request(
            method,
            f"{base_url}{path}",
            json=payload,
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()
        data = response.json()
    logger.debug("harnessctl.response", extra={"body": json.dumps(data, ensure_ascii=False)})
    return data if isinstance(data, dict) else {"data": data}


def _fail(exc: httpx.HTTPError) -> typer.Exit:
    """Explain a failed harness call and return the exit to raise."""
    if isinstance(exc, httpx.ConnectError):
        typer.echo("Connection refused! Make sure the test server is running:", err=True)
        typer.echo("   harnessctl serve", err=True)
    elif isinstance(exc, httpx.TimeoutException):
        typer.echo("Request timed out! The test server might be overloaded.", err=True)
    elif isinstance(exc, httpx.HTTPStatusError):
        typer.echo(f"Response status: {exc.response.status_code}", err=True)
        typer.echo(f"Response data: {exc.response.text}", err=True)
    else:
        typer.echo(f"Request failed: {exc}", err=True)
    return typer.Exit(code=1)


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def hi_command(
    url: UrlOption = None,
    as_json: JsonOption = False,
    env_file: EnvFileOption = Path(".env"),
) -> None:
    """Test that the "Hi" response contains the welcome message."""
    base_url = _base_url(url, env_file)
    try:
        result = _call("POST", base_url, "/test/hi")
    except httpx.HTTPError as exc:
        raise _fail(exc) from exc

    if as_json:
        _echo_json(result)
    else:
        typer.echo(f"Test: {result.get('test')}")
        typer.echo(f"Status: {result.get('status')}")
        typer.echo(f"Timestamp: {result.get('timestamp')}")
        criteria = result.get("criteria")
        if isinstance(criteria, dict):
            typer.echo("Criteria:")
            for pattern, hit in criteria.items():
                typer.echo(f"  {'✅' if hit else '❌'} {pattern}")
        if result.get("responseContent"):
            typer.echo("Response content:")
            typer.echo(RULE)
            typer.echo(str(result["responseContent"]))
            typer.echo(RULE)
        if result.get("error"):
            typer.echo(f"Reason: {result['error']}")
    if result.get("status") != "PASSED":
        raise typer.Exit(code=1)


def run_all_command(
    scenario: Annotated[
        list[str] | None,
        typer.Option("--scenario", help="Scenario to run; repeat for several (default: greeting)."),
    ] = None,
    url: UrlOption = None,
    as_json: JsonOption = False,
    env_file: EnvFileOption = Path(".env"),
) -> None:
    """Run the named checks on the harness server."""
    base_url = _base_url(url, env_file)
    payload = {"scenarios": scenario} if scenario else None
    try:
        summary = _call("POST", base_url, "/test/run", payload, timeout=None)
    except httpx.HTTPError as exc:
        raise _fail(exc) from exc

    if as_json:
        _echo_json(summary)
    else:
        typer.echo(f"Total: {summary.get('total')}")
        typer.echo(f"Passed: {summary.get('passed')}")
        typer.echo(f"Failed: {summary.get('failed')}")
        typer.echo(f"Errors: {summary.get('errors')}")
        for index, result in enumerate(summary.get("results") or [], start=1):
            typer.echo(f"  {index}. {result.get('test')}: {result.get('status')}")
            if result.get("error"):
                typer.echo(f"     Error: {result['error']}")
        for name in summary.get("notRun") or []:
            typer.echo(f"  -  {name}: NOT RUN")
    if summary.get("passed") != summary.get("total") or summary.get("notRun"):
        raise typer.Exit(code=1)


def send_command(
    message: Annotated[str, typer.Argument(help="Message text to send to the Dor app.")],
    url: UrlOption = None,
    as_json: JsonOption = False,
    env_file: EnvFileOption = Path(".env"),
) -> None:
    """Send a custom message through the harness server."""
    base_url = _base_url(url, env_file)
    try:
        result = _call("POST", base_url, f"/send/{quote(message, safe='')}")
    except httpx.HTTPError as exc:
        raise _fail(exc) from exc

    if as_json:
        _echo_json(result)
        return
    delivery = result.get("result") or {}
    typer.echo(f"Test: {result.get('test')}")
    typer.echo(f"Success: {delivery.get('success')}")
    typer.echo(f"Test mode reply: {delivery.get('testMode')}")
    typer.echo(f"Captured responses: {result.get('capturedResponses')}")
    if delivery.get("error"):
        typer.echo(f"Error: {delivery['error']}")


def responses_command(
    url: UrlOption = None,
    as_json: JsonOption = False,
    env_file: EnvFileOption = Path(".env"),
) -> None:
    """List every reply the harness server captured."""
    base_url = _base_url(url, env_file)
    try:
        data = _call("GET", base_url, "/responses")
    except httpx.HTTPError as exc:
        raise _fail(exc) from exc

    if as_json:
        _echo_json(data)
        return
    typer.echo(f"Total responses: {data.get('count')}")
    captured = data.get("responses") or []
    if not captured:
        typer.echo("No responses captured yet.")
    for index, item in enumerate(captured, start=1):
        source = "app" if item.get("testMode") else "fallback"
        typer.echo(f"Response {index} [{source}] at {item.get('timestamp')}:")
        typer.echo(json.dumps(item.get("response"), ensure_ascii=False, indent=2))


def clear_command(url: UrlOption = None, env_file: EnvFileOption = Path(".env")) -> None:
    """Clear captured replies and recorded results."""
    base_url = _base_url(url, env_file)
    try:
        result = _call("POST", base_url, "/test/clear")
    except httpx.HTTPError as exc:
        raise _fail(exc) from exc
    typer.echo(f"{result.get('message')} at {result.get('timestamp')}")


def status_command(
    url: UrlOption = None,
    as_json: JsonOption = False,
    env_file: EnvFileOption = Path(".env"),
) -> None:
    """Show what the harness server reports about itself."""
    base_url = _base_url(url, env_file)
    try:
        info = _call("GET", base_url, "/", timeout=PROBE_TIMEOUT_SECONDS)
    except httpx.HTTPError as exc:
        raise _fail(exc) from exc

    if as_json:
        _echo_json(info)
        return
    typer.echo(f"Server: {info.get('name')}")
    typer.echo(f"Description: {info.get('description')}")
    typer.echo(f"Port: {info.get('port')}")
    typer.echo(f"Dor app URL: {info.get('dorAppUrl')}")
    typer.echo("Endpoints:")
    for endpoint, description in (info.get("endpoints") or {}).items():
        typer.echo(f"  {endpoint}: {description}")


def phone_test_command(
    phone: Annotated[
        str, typer.Option("--phone", help="Simulated sender phone number.")
    ] = "0535305225",
    message: Annotated[str, typer.Option("--message", help="Message to send.")] = "1",
    url: UrlOption = None,
    env_file: EnvFileOption = Path(".env"),
) -> None:
    """Exercise the per-phone endpoint and the backward-compatible /test endpoint."""
    base_url = _base_url(url, env_file)
    try:
        _call("GET", base_url, "/", timeout=PROBE_TIMEOUT_SECONDS)
    except httpx.HTTPError as exc:
        raise _fail(exc) from exc

    checks = (
        (f"/{quote(phone, safe='')}/test", {"message": message}),
        ("/test", {"message": "Hi"}),
    )
    failed = False
    for path, body in checks:
        typer.echo(f"POST {path} {json.dumps(body, ensure_ascii=False)}")
        try:
            result = _call("POST", base_url, path, body)
        except httpx.HTTPError as exc:
            typer.echo(f"Request failed: {exc}", err=True)
            failed = True
            continue
        _echo_json(result)
        failed = failed or not result.get("success")
    if failed:
        raise typer.Exit(code=1)


def _probe(url: str) -> tuple[bool, str]:
    try:
        with httpx.Client(timeout=PROBE_TIMEOUT_SECONDS) as client:
            response = client.get(url)
    except httpx.ConnectError:
        return False, "ECONNREFUSED"
    except httpx.TimeoutException:
        return False, "TIMEOUT"
    except httpx.HTTPError as exc:
        return False, str(exc)
    return True, f"status {response.status_code}"


def doctor_command(env_file: EnvFileOption = Path(".env")) -> None:
    """Diagnose whether the harness server and the Dor app can talk to each other."""
    config = _config(env_file)
    harness_ok, harness_detail = _probe(f"{config.harness_url}/")
    typer.echo(
        f"Test server {config.harness_url}: "
        f"{'running' if harness_ok else 'not running'} ({harness_detail})"
    )
    app_ok, app_detail = _probe(f"{config.app_url}/")
    typer.echo(
        f"Dor app {config.app_url}: {'running' if app_ok else 'not running'} ({app_detail})"
    )
    typer.echo(f"Data store: {'configured' if config.store_configured else 'not configured'}")

    if not (harness_ok and app_ok):
        if not harness_ok:
            typer.echo("Start the test server: harnessctl serve")
        if not app_ok:
            typer.echo("Start the Dor app before running tests.")
        raise typer.Exit(code=1)

    try:
        result = _call("POST", config.harness_url, "/send/hi")
    except httpx.HTTPError as exc:
        raise _fail(exc) from exc
    delivery = result.get("result") or {}
    status = "ok" if delivery.get("success") else "failed"
    typer.echo(f"Communication: {status} ({result.get('test')})")
    if not delivery.get("success"):
        raise typer.Exit(code=1)
    typer.echo("Both servers are running. Try: harnessctl hi")
