"""Run the provider simulator server."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
import uvicorn
from dotenv import load_dotenv

from booking_harness.config import HarnessConfig


def serve_command(
    host: Annotated[str, typer.Option("--host", help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[
        int | None, typer.Option("--port", help="Port to bind (defaults to HARNESS_PORT).")
    ] = None,
    env_file: Annotated[
        Path, typer.Option("--env-file", help="Load environment variables from this .env file.")
    ] = Path(".env"),
) -> None:
    """Start the WhatsApp simulation server in front of the Dor app."""
    load_dotenv(dotenv_path=env_file, override=False, encoding="utf-8")
    from booking_harness.app import create_app

    config = HarnessConfig.from_env()
    bind_port = port or config.port
    typer.echo(
        f"Dor test server on http://{host}:{bind_port} simulating WhatsApp for {config.app_url}"
    )
    uvicorn.run(create_app(config), host=host, port=bind_port)
