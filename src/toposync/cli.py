"""
toposync CLI.

Usage:
    toposync --help
    toposync watch lab.clab.yml
    toposync watch lab.clab.yml --view --poll 2
    toposync validate lab.clab.yml
    toposync new mylab
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from .config import SyncConfig
from .deployment import DeploymentStateProbe, InspectCommandSource
from .exceptions import TopoSyncError
from .panel import ConsoleChannel, PanelSession
from .sync import SyncGuard
from .sync.engine import TopologySyncEngine
from .topology import TopologySourceReader
from .topology.source import template_path
from .utils import init_sync_logging

console = Console()


@click.group()
@click.version_option(package_name="toposync")
def main():
    """toposync - keep topology files, graph and deployment state in sync."""
    pass


async def _watch(engine: TopologySyncEngine, path: Path, lab: Optional[str], view: bool) -> None:
    await engine.open(path, lab_name=lab, view_mode=view)
    try:
        while True:
            await asyncio.sleep(engine.config.watch_poll_interval_s or 1.0)
            if engine.view_mode:
                await engine.refresh_link_states()
    finally:
        await engine.dispose()


@main.command()
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--lab", default=None, help="Lab name (defaults to the file name).")
@click.option("--view", is_flag=True, help="Open in view mode.")
@click.option("--artifacts", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Directory for graph/environment artifacts.")
@click.option("--poll", type=float, default=1.0, show_default=True,
              help="File polling interval in seconds (0 disables).")
@click.option("--sudo", is_flag=True, help="Run containerlab inspect with sudo.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def watch(file: Path, lab: Optional[str], view: bool, artifacts: Optional[Path],
          poll: float, sudo: bool, verbose: bool):
    """Synchronize FILE and print every panel message."""
    init_sync_logging(logging.DEBUG if verbose else logging.INFO)
    try:
        config = SyncConfig(
            artifacts_dir=artifacts,
            watch_poll_interval_s=poll,
            inspect_use_sudo=sudo,
        )
    except TopoSyncError as e:
        raise click.ClickException(e.user_message)

    engine = TopologySyncEngine(
        config,
        panel=PanelSession(ConsoleChannel(console)),
        probe=DeploymentStateProbe(InspectCommandSource(config)),
    )
    try:
        asyncio.run(_watch(engine, file, lab, view))
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
    except TopoSyncError as e:
        raise click.ClickException(e.user_message)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(file: Path):
    """Validate a topology FILE."""
    reader = TopologySourceReader(SyncGuard())
    try:
        text = asyncio.run(reader.read(file))
    except TopoSyncError as e:
        raise click.ClickException(e.user_message)

    result = reader.validate(text)
    if result.valid:
        console.print(f"[green]✓[/green] {escape(str(file))} is a valid topology")
        return
    console.print(f"[red]✗[/red] {escape(str(file))}: {escape(result.reason or '')}")
    raise SystemExit(1)


@main.command()
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--force", is_flag=True, help="Overwrite an existing file.")
def new(file: Path, force: bool):
    """Create a new topology FILE from the default template."""
    reader = TopologySourceReader(SyncGuard())
    target = template_path(file)
    if target.exists() and not force:
        raise click.ClickException(f"{target} already exists (use --force to overwrite)")
    created = asyncio.run(reader.create_template(target))
    console.print(f"[green]Created[/green] {escape(str(created))}")


if __name__ == "__main__":
    main()
