#!/usr/bin/env python3
"""
DNS-SD Discovery CLI

Command-line interface for mDNS device discovery and packet monitoring.

Usage:
    dnssd discover _googlecast._tcp.local     # Find Chromecasts
    dnssd discover _hue._tcp.local --quick    # Stop at the first bridge
    dnssd monitor                             # Print every mDNS packet
    dnssd config                              # Show effective settings
"""

import asyncio
import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.logging import RichHandler

from .config import load_config
from .discovery import DnsSd
from .errors import DnsSdError

console = Console()


def setup_logging(verbose: bool = False, level: str = 'INFO'):
    """Configure logging with rich output."""
    level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False),
              help='JSON config file')
@click.pass_context
def cli(ctx, verbose, config_path):
    """DNS-SD discovery - find devices advertised over multicast DNS."""
    config = load_config(Path(config_path) if config_path else None)
    setup_logging(verbose, config.log_level)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command()
@click.argument('names', nargs=-1, required=True)
@click.option('--type', '-t', 'query_type', default=None, help='Query type (PTR, A, ... or *)')
@click.option('--key', '-k', type=click.Choice(['address', 'fqdn']), default=None,
              help='Deduplicate devices by address or fqdn')
@click.option('--wait', '-w', type=int, default=None, help='Seconds to wait for answers')
@click.option('--quick', '-q', is_flag=True, help='Stop at the first device found')
@click.option('--filter', '-f', 'text_filter', default=None,
              help='Only devices whose fqdn/address/model contains this text')
@click.option('--json', 'as_json', is_flag=True, help='Print JSON instead of a table')
@click.pass_context
def discover(ctx, names, query_type, key, wait, quick, text_filter, as_json):
    """Discover devices answering for NAMES."""
    config = ctx.obj['config']

    async def run():
        sd = DnsSd(config)
        return await sd.discover(
            list(names),
            query_type=query_type,
            key=key,
            wait=wait,
            quick=quick,
            device_filter=text_filter,
        )

    try:
        devices = asyncio.run(run())
    except DnsSdError as e:
        console.print(f"[red]✗ {e}[/red]")
        ctx.exit(1)

    if as_json:
        click.echo(json.dumps([d.to_dict() for d in devices], indent=2))
        return

    if not devices:
        console.print("[yellow]No devices found[/yellow]")
        return

    table = Table(title="Discovered Devices")
    table.add_column("Address", style="yellow")
    table.add_column("FQDN", style="cyan")
    table.add_column("Model")
    table.add_column("Family")
    table.add_column("Service", style="green")

    for d in devices:
        service = f"{d.service.type}/{d.service.protocol}:{d.service.port}" if d.service else ""
        table.add_row(
            d.address or "",
            d.fqdn or "",
            d.model_name or "",
            d.family_name or "",
            service,
        )

    console.print(table)


@cli.command()
@click.option('--json', 'as_json', is_flag=True, help='Print one JSON object per packet')
@click.pass_context
def monitor(ctx, as_json):
    """Print every mDNS packet seen until interrupted."""
    config = ctx.obj['config']

    async def run():
        async with DnsSd(config) as sd:
            subscription = await sd.start_monitoring()
            console.print("[dim]Monitoring mDNS traffic, press Ctrl+C to stop[/dim]")
            async for message in subscription:
                if as_json:
                    click.echo(json.dumps(message.to_dict()))
                else:
                    console.print(message.summary(), markup=False, highlight=False)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped[/yellow]")
    except DnsSdError as e:
        console.print(f"[red]✗ {e}[/red]")
        ctx.exit(1)


@cli.command('config')
@click.pass_context
def show_config(ctx):
    """Show the effective configuration."""
    config = ctx.obj['config']
    lines = [f"{key}: [yellow]{value}[/yellow]" for key, value in config.to_dict().items()]
    console.print(Panel.fit("\n".join(lines), title="DNS-SD Config"))


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
