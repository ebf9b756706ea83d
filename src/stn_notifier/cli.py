# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface for stn-notifier.

Usage:
    stn-notifier run                  # full notifier: test mail, then cron job
    stn-notifier check-smtp           # negotiate the SMTP transport and report it
    stn-notifier screenshot out.jpg   # fetch the current screenshot
    stn-notifier test-mail            # send the test notification once

Every command accepts ``--config PATH``; otherwise ``$STN_CONFIG_FILE`` or
``stn_config.ini`` is used when present.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Optional

import aiohttp
import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .app import NotifierApp
from .config import AppConfig, load_settings
from .errors import NotifierError
from .logger import configure_logging, get_logger

console = Console()
err_console = Console(stderr=True)

logger = get_logger("cli")

config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to the INI configuration file.",
)


def run_async(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def _load(config_path: Optional[Path], *, file_logging: bool = False) -> AppConfig:
    """Load settings and configure logging; exits on invalid configuration."""
    try:
        settings = load_settings(config_path)
    except NotifierError as e:
        print_error(str(e))
        sys.exit(1)
    configure_logging(settings.log.max_level, settings.log.dir if file_logging else None)
    return settings


def _fail(error: BaseException) -> None:
    print_error(str(error))
    sys.exit(1)


@click.group()
@click.version_option(__version__)
def main() -> None:
    """stn-notifier - relay trading snapshots by email."""


@main.command("run")
@config_option
def run_command(config_path: Optional[Path]) -> None:
    """Run the notifier until interrupted."""
    settings = _load(config_path, file_logging=True)
    app = NotifierApp(settings)
    try:
        run_async(app.run_forever())
    except NotifierError as e:
        logger.error("Fatal error: %s", e)
        _fail(e)


@main.command("check-smtp")
@config_option
def check_smtp(config_path: Optional[Path]) -> None:
    """Negotiate the SMTP transport and show which variant was chosen."""
    settings = _load(config_path)

    async def _check() -> dict[str, Any]:
        app = NotifierApp(settings)
        try:
            session = await app.connect_smtp()
            return {"host": session.host, "port": session.port, "variant": session.variant.label}
        finally:
            await app.shutdown()

    try:
        result = run_async(_check())
    except NotifierError as e:
        _fail(e)
        return

    table = Table(title="SMTP transport")
    table.add_column("Host", style="cyan")
    table.add_column("Port")
    table.add_column("Variant", style="green")
    table.add_row(result["host"], str(result["port"]), result["variant"])
    console.print(table)
    print_success("SMTP session established")


@main.command("screenshot")
@click.argument("output", type=click.Path(dir_okay=False, writable=True, path_type=Path))
@config_option
def screenshot(output: Path, config_path: Optional[Path]) -> None:
    """Fetch the current screenshot and write it to OUTPUT."""
    settings = _load(config_path)

    async def _capture() -> bytes:
        app = NotifierApp(settings)
        try:
            await app.open_http()
            return await app.screenshot_client().capture()
        finally:
            await app.shutdown()

    try:
        data = run_async(_capture())
    except (NotifierError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        _fail(e)
        return

    output.write_bytes(data)
    print_success(f"Saved {len(data)} bytes to {output}")


@main.command("test-mail")
@config_option
def test_mail(config_path: Optional[Path]) -> None:
    """Send the test notification once."""
    settings = _load(config_path)

    async def _send() -> bool:
        app = NotifierApp(settings)
        try:
            await app.connect_smtp()
            await app.open_http()
            return await app.send_test_notification()
        finally:
            await app.shutdown()

    try:
        sent = run_async(_send())
    except NotifierError as e:
        _fail(e)
        return

    if not sent:
        _fail(RuntimeError("test notification was not sent, see log for details"))
    print_success("Test notification sent")


if __name__ == "__main__":
    main()
