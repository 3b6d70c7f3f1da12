"""MartianPay CLI - Command line interface."""

from __future__ import annotations

import asyncio
import json
import sys
import time

import click
from rich.console import Console
from rich.table import Table

console = Console()

BANNER = """
 __  __            _   _             ____
|  \\/  | __ _ _ __| |_(_) __ _ _ __ |  _ \\ __ _ _   _
| |\\/| |/ _` | '__| __| |/ _` | '_ \\| |_) / _` | | | |
| |  | | (_| | |  | |_| | (_| | | | |  __/ (_| | |_| |
|_|  |_|\\__,_|_|   \\__|_|\\__,_|_| |_|_|   \\__,_|\\__, |
                                                |___/
              Signed webhooks, verified
"""


def _read_payload(path: str) -> bytes:
    # "-" reads the payload from stdin
    if path == "-":
        return click.get_binary_stream("stdin").read()
    with open(path, "rb") as f:
        return f.read()


@click.group(invoke_without_command=True)
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to YAML or TOML config file",
)
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Log level (default: MARTIANPAY_LOG_LEVEL or info)",
)
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def main(ctx: click.Context, config_file: str | None, log_level: str | None, json_logs: bool):
    """MartianPay - Receive and verify signed MartianPay webhooks.

    Examples:

        martianpay serve --secret whsec_...

        martianpay sign event.json --secret whsec_...

        martianpay verify event.json --header "t=...,v1=..." --secret whsec_...

        martianpay send event.json http://localhost:8080/v1/webhook_test

    Use 'martianpay COMMAND --help' for more info on specific commands.
    """
    from pydantic import ValidationError

    from martianpay.core.config import get_config
    from martianpay.observability.log import configure_logging

    if log_level is None:
        try:
            log_level = get_config().log_level
        except ValidationError as e:
            console.print(f"[red]Invalid configuration:[/red] {e}")
            sys.exit(1)
    configure_logging(log_level, json_output=json_logs)

    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file

    if ctx.invoked_subcommand is None:
        console.print(BANNER, style="cyan")
        console.print("\nCommands:", style="bold")
        console.print("  martianpay serve    Run the webhook receiver", style="dim")
        console.print("  martianpay sign     Print a signature header for a payload", style="dim")
        console.print("  martianpay verify   Verify a payload against a header", style="dim")
        console.print("  martianpay send     Sign a payload and POST it to a receiver", style="dim")
        console.print("  martianpay config   Show configuration", style="dim")
        console.print("  martianpay version  Show version information", style="dim")


@main.command()
@click.option("--host", default=None, help="Bind address (default: 0.0.0.0)")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on (default: 8080)")
@click.option("--path", default=None, help="Webhook route (default: /v1/webhook_test)")
@click.option("--secret", envvar="MARTIANPAY_WEBHOOK_SECRET", help="Endpoint signing secret")
@click.option(
    "--tolerance",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Maximum event age in seconds",
)
@click.option(
    "--legacy-status-codes",
    is_flag=True,
    help="Answer every failure with HTTP 500",
)
@click.pass_context
def serve(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    path: str | None,
    secret: str | None,
    tolerance: float | None,
    legacy_status_codes: bool,
):
    """Run the webhook receiver.

    Verified events are projected onto their resource type and logged.
    """
    from pydantic import ValidationError

    from martianpay.core.config import WebhookSettings, webhook_settings_from_file
    from martianpay.server import WebhookReceiver, run

    overrides = {
        "host": host,
        "port": port,
        "path": path,
        "secret": secret,
        "tolerance": tolerance,
        "legacy_status_codes": legacy_status_codes or None,
    }
    config_file = ctx.obj.get("config_file") if ctx.obj else None
    try:
        if config_file:
            settings = webhook_settings_from_file(config_file, **overrides)
            console.print(f"Loaded config from {config_file}", style="dim")
        else:
            settings = WebhookSettings(**{k: v for k, v in overrides.items() if v is not None})
    except (ValueError, ValidationError) as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        sys.exit(1)

    if not settings.secret:
        console.print("[red]Error:[/red] a webhook secret is required (--secret or MARTIANPAY_WEBHOOK_SECRET)")
        sys.exit(1)

    receiver = WebhookReceiver(settings)

    console.print(BANNER, style="cyan")
    console.print(
        f"Listening on http://{settings.host}:{settings.port}{settings.path}",
        style="green",
    )
    console.print("\nPress Ctrl+C to stop.\n", style="dim")

    try:
        asyncio.run(run(receiver))
    except KeyboardInterrupt:
        console.print("\nShutting down...", style="yellow")


@main.command()
@click.argument("payload_file", type=click.Path(allow_dash=True))
@click.option("--secret", envvar="MARTIANPAY_WEBHOOK_SECRET", required=True, help="Signing secret")
@click.option("--timestamp", "-t", type=int, default=None, help="Unix timestamp to sign with (default: now)")
def sign(payload_file: str, secret: str, timestamp: int | None):
    """Print the Martian-Pay-Signature header for a payload file."""
    from martianpay.webhooks.signature import sign_payload

    payload = _read_payload(payload_file)
    click.echo(sign_payload(payload, secret, timestamp=timestamp))


@main.command()
@click.argument("payload_file", type=click.Path(allow_dash=True))
@click.option("--header", "-H", required=True, help="Martian-Pay-Signature header value")
@click.option("--secret", envvar="MARTIANPAY_WEBHOOK_SECRET", required=True, help="Signing secret")
@click.option(
    "--tolerance",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Maximum event age in seconds",
)
@click.option("--now", type=float, default=None, help="Verify as of this Unix time (default: now)")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def verify(
    payload_file: str,
    header: str,
    secret: str,
    tolerance: float | None,
    now: float | None,
    json_output: bool,
):
    """Verify a payload file against a signature header and show the event."""
    from martianpay.webhooks import DEFAULT_TOLERANCE, WebhookError, construct_event

    payload = _read_payload(payload_file)
    try:
        event = construct_event(
            payload,
            header,
            secret,
            tolerance=DEFAULT_TOLERANCE if tolerance is None else tolerance,
            now=now if now is not None else time.time(),
        )
    except WebhookError as e:
        if json_output:
            click.echo(json.dumps({"valid": False, "status": e.status.value, "error": e.message}))
        else:
            console.print(f"[red]Invalid:[/red] {e.message} ({e.status.value})")
        sys.exit(1)

    if json_output:
        click.echo(
            json.dumps(
                {
                    "valid": True,
                    "id": event.id,
                    "type": event.type,
                    "created": event.created,
                    "livemode": event.livemode,
                }
            )
        )
        return

    console.print("[green]Signature valid[/green]")
    table = Table(title="Event")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("id", event.id)
    table.add_row("type", event.type)
    table.add_row("created", str(event.created))
    table.add_row("livemode", str(event.livemode))
    table.add_row("api_version", event.api_version)
    table.add_row("object id", str(event.data.object.get("id", "")))
    console.print(table)


@main.command()
@click.argument("payload_file", type=click.Path(allow_dash=True))
@click.argument("url")
@click.option("--secret", envvar="MARTIANPAY_WEBHOOK_SECRET", required=True, help="Signing secret")
@click.option("--timestamp", "-t", type=int, default=None, help="Unix timestamp to sign with (default: now)")
@click.option("--timeout", type=float, default=10.0, help="Request timeout in seconds")
def send(payload_file: str, url: str, secret: str, timestamp: int | None, timeout: float):
    """Sign a payload file and POST it to a webhook receiver."""
    import httpx

    from martianpay.webhooks.signature import SIGNATURE_HEADER, sign_payload

    payload = _read_payload(payload_file)
    header = sign_payload(payload, secret, timestamp=timestamp)

    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.post(
                url,
                content=payload,
                headers={"Content-Type": "application/json", SIGNATURE_HEADER: header},
            )
    except httpx.HTTPError as e:
        console.print(f"[red]Error sending webhook:[/red] {e}")
        sys.exit(1)

    style = "green" if response.is_success else "red"
    console.print(f"[bold]Status:[/bold] [{style}]{response.status_code}[/{style}]")
    click.echo(response.text)
    if not response.is_success:
        sys.exit(1)


@main.command()
def version():
    """Show version information."""
    from martianpay import __version__

    console.print(BANNER, style="cyan")
    console.print(f"[bold]Version:[/bold] {__version__}")
    console.print(f"[bold]Python:[/bold] {sys.version}")


@main.group()
def config():
    """View configuration settings.

    All settings can be configured via environment variables with the
    MARTIANPAY_ prefix.
    """
    pass


@config.command("show")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def config_show(json_output: bool):
    """Show current configuration settings, secrets masked."""
    from martianpay.core.config import get_config

    display = get_config().to_display_dict()

    if json_output:
        click.echo(json.dumps(display, indent=2))
        return

    console.print("[bold]Current Configuration[/bold]\n")
    console.print(f"log_level: {display.pop('log_level')}")
    for section_name, settings in display.items():
        table = Table(title=section_name.title())
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")
        table.add_column("Env Variable", style="dim")

        for key, value in settings.items():
            env_var = f"MARTIANPAY_{section_name.upper()}_{key.upper()}"
            table.add_row(key, str(value), env_var)

        console.print(table)
        console.print()


if __name__ == "__main__":
    main()
