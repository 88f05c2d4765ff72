"""harnessctl CLI entrypoint."""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version
from typing import Annotated

import typer

from booking_harness.config import debug_enabled
from booking_harness.harnessctl.e2e import e2e_command
from booking_harness.harnessctl.runner import (
    clear_command,
    doctor_command,
    hi_command,
    phone_test_command,
    responses_command,
    run_all_command,
    send_command,
    status_command,
)
from booking_harness.harnessctl.serve import serve_command

app = typer.Typer(help="Booking chat-bot test harness CLI.")


@app.callback()
def main(
    debug: Annotated[
        bool, typer.Option("--debug", help="Enable debug logging (or set DEBUG=true).")
    ] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug or debug_enabled() else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


app.command("serve")(serve_command)
app.command("hi")(hi_command)
app.command("all")(run_all_command)
app.command("send")(send_command)
app.command("responses")(responses_command)
app.command("clear")(clear_command)
app.command("status")(status_command)
app.command("phone-test")(phone_test_command)
app.command("doctor")(doctor_command)
app.command("e2e")(e2e_command)


@app.command("version")
def version_command() -> None:
    """Print installed package version."""
    try:
        ver = version("booking-harness")
    except PackageNotFoundError:
        ver = "0.0.0+local"
    typer.echo(ver)


if __name__ == "__main__":
    app()
