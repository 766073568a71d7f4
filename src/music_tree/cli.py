"""Command line interface for inspecting the music tree runtime."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.tree import Tree

from .events.event_bus import EventBus
from .exceptions import MusicTreeError
from .models.config import RuntimeConfig, create_default_config, load_config
from .runtime import Runtime
from .state.store import StateStore
from .state.utils import MISSING

console = Console()

STATUS_STYLES = {
    "initialized": "green",
    "failed": "red",
    "shutdown": "dim",
    "registered": "yellow",
    "initializing": "yellow",
}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def build_state_tree(label: str, value: Any) -> Tree:
    """Render a state value as a rich tree."""
    tree = Tree(f"[bold cyan]{label}[/bold cyan]")
    _add_branch(tree, value)
    return tree


def _add_branch(node: Tree, value: Any) -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            if isinstance(item, dict):
                _add_branch(node.add(f"[cyan]{key}[/cyan]"), item)
            else:
                node.add(f"[cyan]{key}[/cyan]: {item!r}")
    else:
        node.add(repr(value))


@click.group()
@click.version_option(package_name="music-tree")
@click.option('--verbose', is_flag=True, help='Verbose output')
def cli(verbose: bool):
    """Inspect the music tree event bus, state store and services."""
    _configure_logging(verbose)


@cli.command()
@click.option('--path', 'state_path', default=None, help='Dotted path to show')
def state(state_path: Optional[str]):
    """Show the default state document."""
    store = StateStore(EventBus())
    if state_path:
        value = store.get(state_path)
        if value is MISSING:
            console.print(f"[red]No state at '{state_path}'[/red]")
            sys.exit(1)
        console.print(build_state_tree(state_path, value))
    else:
        console.print(build_state_tree("state", store.get_state()))


@cli.command()
@click.option(
    '--config',
    'config_path',
    type=click.Path(exists=True, path_type=Path),
    help='Configuration file path'
)
def services(config_path: Optional[Path]):
    """Start the configured services, report their status and shut down."""
    try:
        config = load_config(config_path) if config_path else RuntimeConfig.default()
        rows = asyncio.run(_collect_service_status(config))
    except MusicTreeError as e:
        console.print(f"\n[red]Error: {e}[/red]")
        sys.exit(1)

    table = Table(title="Services")
    table.add_column("Service", style="cyan")
    table.add_column("Status")
    table.add_column("Required")
    table.add_column("Dependencies")
    table.add_column("Init (ms)", justify="right")

    for row in rows:
        style = STATUS_STYLES.get(row["status"], "white")
        init_time = f"{row['init_time'] * 1000:.1f}" if row["init_time"] is not None else "-"
        table.add_row(
            row["name"],
            f"[{style}]{row['status']}[/{style}]",
            "yes" if row["required"] else "no",
            ", ".join(row["dependencies"]) or "-",
            init_time,
        )

    console.print(table)


async def _collect_service_status(config: RuntimeConfig):
    runtime = Runtime(config)
    await runtime.start()
    try:
        return runtime.services.get_service_status()
    finally:
        await runtime.stop()


@cli.command('init-config')
@click.argument('path', type=click.Path(path_type=Path))
@click.option('--force', is_flag=True, help='Overwrite an existing file')
def init_config(path: Path, force: bool):
    """Write a default configuration to PATH."""
    if path.exists() and not force:
        console.print(f"[yellow]{path} already exists (use --force to overwrite)[/yellow]")
        sys.exit(1)
    create_default_config(path)
    console.print(f"[green]✓ Wrote default configuration to {path}[/green]")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
