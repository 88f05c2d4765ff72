"""End-to-end booking flow command for harnessctl."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated

import httpx
import typer
from dotenv import load_dotenv

from booking_harness.config import STORE_ENV_VARS, HarnessConfig
from booking_harness.context import RunContext
from booking_harness.errors import ConfigurationError
from booking_harness.harnessctl.runner import PROBE_TIMEOUT_SECONDS
from booking_harness.scenario import Scenario, ScenarioDriver, booking_scenario, builtin_scenarios
from booking_harness.scenario import load_scenarios
from booking_harness.simulator import WebhookSimulator
from booking_harness.store import BookingVerifier
from booking_harness.types import RunSummary, StepStatus

_STATUS_MARKS = {StepStatus.PASSED: "✅", StepStatus.FAILED: "❌", StepStatus.ERROR: "⚠️"}


def _select_scenario(
    name: str, file: Path | None, verify: bool, config: HarnessConfig
) -> Scenario:
    if file is not None:
        try:
            source = load_scenarios(file, config)
        except (OSError, ValueError) as exc:
            raise typer.BadParameter(str(exc), param_hint="--file") from exc
        if not source:
            raise typer.BadParameter("No valid scenarios found in file.", param_hint="--file")
    else:
        source = builtin_scenarios(config)
        if name == "booking" and not verify:
            source["booking"] = booking_scenario(config, verify=False)
    selected = source.get(name)
    if selected is None:
        available = ", ".join(sorted(source))
        raise typer.BadParameter(f"Unknown scenario '{name}'. Available: {available}")
    return selected


def _app_is_reachable(config: HarnessConfig) -> bool:
    try:
        with httpx.Client(timeout=PROBE_TIMEOUT_SECONDS) as client:
            client.get(f"{config.app_url}/")
    except httpx.HTTPError:
        return False
    return True


async def _run_scenario(config: HarnessConfig, scenario: Scenario) -> RunSummary:
    async with httpx.AsyncClient(timeout=config.request_timeout) as client:
        verifier = BookingVerifier(config, client) if scenario.verification else None
        driver = ScenarioDriver(
            WebhookSimulator(config, client),
            RunContext(),
            verifier=verifier,
            step_delay=config.step_delay,
            settle_delay=config.settle_delay,
        )
        return await driver.run(scenario)


def _render_summary(summary: RunSummary) -> str:
    lines = [
        f"scenario: {summary.scenario}",
        f"total steps: {summary.total}",
        f"successful: {summary.passed}",
        f"failed: {summary.failed}",
        f"errors: {summary.errors}",
        "results:",
    ]
    for index, result in enumerate(summary.results, start=1):
        lines.append(f"  {index}. {_STATUS_MARKS[result.status]} {result.step}")
        if result.reply and result.reply.get("content") is not None:
            lines.append(f"     response: {result.reply['content']}")
        if result.message:
            lines.append(f"     {result.message}")
        if result.error:
            lines.append(f"     error: {result.error}")
    for name in summary.not_run:
        lines.append(f"  -  {name} (not run)")
    lines.append(
        "ALL TESTS PASSED! Complete flow works correctly."
        if summary.success
        else "Some steps failed. Check the details above."
    )
    return "\n".join(lines)


def e2e_command(
    scenario: Annotated[
        str, typer.Option("--scenario", help="Scenario name to run.")
    ] = "booking",
    file: Annotated[
        Path | None, typer.Option("--file", help="JSON scenario file to load instead.")
    ] = None,
    verify: Annotated[
        bool,
        typer.Option("--verify/--no-verify", help="Check the booking row in the data store."),
    ] = True,
    as_json: Annotated[bool, typer.Option("--json", help="Print the run summary as JSON.")] = False,
    env_file: Annotated[
        Path, typer.Option("--env-file", help="Load environment variables from this .env file.")
    ] = Path(".env"),
) -> None:
    """Drive the Dor app through a scripted conversation and verify the booking."""
    load_dotenv(dotenv_path=env_file, override=False, encoding="utf-8")
    config = HarnessConfig.from_env()
    selected = _select_scenario(scenario, file, verify, config)

    if selected.verification is not None:
        try:
            config.require_store()
        except ConfigurationError as exc:
            typer.echo(f"{exc}", err=True)
            typer.echo("Set them in the environment or in the .env file:", err=True)
            for name in STORE_ENV_VARS:
                typer.echo(f"   {name}=...", err=True)
            raise typer.Exit(code=1) from exc

    if not _app_is_reachable(config):
        typer.echo(f"Dor app is not running at {config.app_url}", err=True)
        raise typer.Exit(code=1)

    summary = asyncio.run(_run_scenario(config, selected))

    if as_json:
        typer.echo(json.dumps(summary.to_dict(), ensure_ascii=False, indent=2, default=str))
    else:
        typer.echo(_render_summary(summary))
    if not summary.success:
        raise typer.Exit(code=1)
