"""
Bridge CLI

Command-line interface for operating the WhatsApp / Bitrix24 Open Channel bridge.

Commands:
- serve: Run the webhook HTTP service
- poll: Run one relay cycle (or loop with --loop)
- status: Check connectivity of both upstream APIs
- send-test: Send a test message to WhatsApp
- verify-config: Report missing settings
"""

import asyncio
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from openlines_bridge.core.errors import ConfigurationError
from openlines_bridge.core.logging import setup_logging
from openlines_bridge.core.settings import Settings, get_settings

app = typer.Typer(
    name="openlines-bridge",
    help="WhatsApp to Bitrix24 Open Channel bridge CLI",
)

console = Console()

# Settings each component needs, by selected provider
REQUIRED_SETTINGS = {
    "meta": (
        "whatsapp_phone_number_id",
        "whatsapp_business_account_id",
        "whatsapp_api_token",
        "whatsapp_webhook_verify_token",
    ),
    "rest": ("bitrix24_webhook_url", "bitrix24_open_channel_id"),
}


def load_settings() -> Settings:
    try:
        settings = get_settings()
    except ConfigurationError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)

    setup_logging(settings)
    return settings


def build_outbound(settings: Settings):
    """Build an OutboundHandler, exiting on missing credentials."""
    from openlines_bridge.bitrix import get_gateway
    from openlines_bridge.providers import get_provider
    from openlines_bridge.service.outbound_handler import OutboundHandler

    try:
        return OutboundHandler(get_provider(settings), get_gateway(settings))
    except ConfigurationError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8090, help="Bind port"),
):
    """
    Run the webhook service.
    """
    from bridge_webhook.main import main as run_webhook

    load_settings()
    run_webhook(host=host, port=port)


@app.command()
def poll(
    loop: bool = typer.Option(False, "--loop", help="Keep polling until interrupted"),
):
    """
    Relay operator replies from Bitrix24 to WhatsApp.

    Without --loop a single cycle runs and the relayed count is printed.
    """
    from bridge_relay.main import main as run_relay_loop
    from bridge_relay.main import run_once

    settings = load_settings()

    if loop:
        run_relay_loop()
        return

    try:
        count = asyncio.run(run_once(settings))
    except ConfigurationError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)

    rprint(f"[green]Relayed {count} message(s)[/green]")


@app.command()
def status():
    """
    Check connectivity of WhatsApp and Bitrix24.
    """
    settings = load_settings()
    outbound = build_outbound(settings)

    async def check():
        try:
            return await outbound.check_connection_status()
        finally:
            await outbound.provider.close()
            await outbound.bitrix.close()

    result = asyncio.run(check())

    table = Table(title="Connection Status")
    table.add_column("Service")
    table.add_column("Connected")
    table.add_column("Info", style="dim")

    table.add_row("WhatsApp", "Yes" if result.whatsapp else "No", str(result.whatsapp_info or "-"))
    table.add_row("Bitrix24", "Yes" if result.bitrix24 else "No", str(result.bitrix24_info or "-"))
    console.print(table)

    for error in result.errors:
        rprint(f"[red]{error}[/red]")

    if result.errors:
        raise typer.Exit(1)


@app.command()
def send_test(
    to: str = typer.Argument(..., help="Recipient phone number (country code, no +)"),
    message: str = typer.Argument(..., help="Message text"),
    media_url: Optional[str] = typer.Option(None, help="Public media URL"),
    media_type: Optional[str] = typer.Option(None, help="image, video, audio or document"),
):
    """
    Send a test message.

    This sends a message directly via the provider for testing purposes.
    """
    settings = load_settings()
    outbound = build_outbound(settings)

    async def send():
        try:
            return await outbound.process_outgoing_message(to, message, media_url or "", media_type or "")
        finally:
            await outbound.provider.close()
            await outbound.bitrix.close()

    response = asyncio.run(send())

    if response.success:
        rprint("[green]Message sent successfully![/green]")
        rprint(f"  Message ID: {response.message_id}")
    else:
        rprint("[red]Failed to send message[/red]")
        rprint(f"  Error: {response.error_message}")
        rprint(f"  Code: {response.error_code}")
        raise typer.Exit(1)


@app.command()
def verify_config():
    """
    Report settings missing for the selected providers.
    """
    settings = load_settings()

    missing = []
    for provider in (settings.whatsapp_provider, settings.bitrix24_provider):
        fields = REQUIRED_SETTINGS.get(provider, ())
        missing.extend(name.upper() for name in fields if not getattr(settings, name))

    table = Table(title="Configuration")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("WHATSAPP_PROVIDER", settings.whatsapp_provider)
    table.add_row("WHATSAPP_API_VERSION", settings.whatsapp_api_version)
    table.add_row("BITRIX24_PROVIDER", settings.bitrix24_provider)
    table.add_row("BITRIX24_DOMAIN", settings.bitrix24_domain or "-")
    table.add_row("SIGNATURE_CHECK", "Yes" if settings.whatsapp_app_secret else "No")
    table.add_row("RELAY_LOCK", "redis" if settings.redis_url else "in-process")
    console.print(table)

    if missing:
        rprint(f"[red]Missing settings: {', '.join(missing)}[/red]")
        raise typer.Exit(1)

    rprint("[green]Configuration OK[/green]")


if __name__ == "__main__":
    app()
