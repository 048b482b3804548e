"""lineage-graph command line."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from lineage_graph.client import OpenMetadataClient
from lineage_graph.config import Settings, load_settings
from lineage_graph.errors import ConfigError, LineageError
from lineage_graph.explorer import LineageExplorer
from lineage_graph.layout.types import PositionedSnapshot
from lineage_graph.model import Direction
from lineage_graph.renderers.svg import SvgRenderer

app = typer.Typer(
    name="lineage-graph",
    help="Explore OpenMetadata lineage incrementally",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _settings(config: Path | None) -> Settings:
    try:
        return load_settings(config)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)


def _parse_step(raw: str) -> tuple[str, Direction]:
    """``KEY:DIRECTION``; the key itself may contain colons."""
    key, sep, direction = raw.rpartition(":")
    if not sep or not key:
        raise typer.BadParameter(f"expected KEY:DIRECTION, got {raw!r}")
    try:
        return key, Direction(direction.strip().lower())
    except ValueError:
        raise typer.BadParameter(f"direction must be 'upstream' or 'downstream', got {direction!r}")


def _print_table(positioned: PositionedSnapshot) -> None:
    snapshot = positioned.snapshot
    title = f"Lineage of {snapshot.center_key} (v{snapshot.version})"
    if positioned.fallback:
        title += " [yellow](fallback layout)[/yellow]"
    table = Table(title=title)
    table.add_column("Entity", style="cyan")
    table.add_column("Label")
    table.add_column("Type")
    table.add_column("Role")
    table.add_column("x", justify="right")
    table.add_column("y", justify="right")
    for entity in sorted(snapshot.entities, key=lambda e: e.key):
        pos = positioned.position(entity.key)
        x, y = (f"{pos[0]:.0f}", f"{pos[1]:.0f}") if pos else ("-", "-")
        label = f"[strike]{entity.label}[/strike]" if entity.deleted else entity.label
        table.add_row(entity.key, label, entity.type, snapshot.role(entity.key).value, x, y)
    console.print(table)
    console.print(f"{len(snapshot.entities)} entities, {len(snapshot.edges)} edges")


def _positioned_dict(positioned: PositionedSnapshot) -> dict:
    data = positioned.snapshot.to_dict()
    data["layout"] = {
        "seq": positioned.seq,
        "fallback": positioned.fallback,
        "positions": {key: {"x": box.x, "y": box.y} for key, box in positioned.boxes.items()},
    }
    return data


async def _show(
    settings: Settings,
    fqn: str,
    entity_type: str,
    expand: list[tuple[str, Direction]],
    collapse: list[tuple[str, Direction]],
) -> PositionedSnapshot | None:
    async with OpenMetadataClient(settings) as client:
        explorer = LineageExplorer(client, settings)
        try:
            outcome = await explorer.open(fqn, entity_type)
            if not outcome.ok:
                console.print(f"[red]Failed to load lineage for {fqn}:[/red] {outcome.error}")
                return None

            for key, direction in expand:
                step = await explorer.expand(key, direction)
                if step is not None and not step.ok:
                    console.print(f"[yellow]Expand {key} {direction.value} failed:[/yellow] {step.error}")
                elif step is not None and not step.changed:
                    console.print(f"[dim]No further {direction.value} lineage for {key}[/dim]")
            for key, direction in collapse:
                await explorer.collapse(key, direction)

            return explorer.positioned
        finally:
            explorer.close()


@app.command()
def show(
    fqn: str = typer.Argument(..., help="Fully qualified name of the center entity"),
    entity_type: str = typer.Option("table", "--type", "-t", help="Entity type of the center"),
    expand: Optional[list[str]] = typer.Option(None, "--expand", "-e", help="KEY:DIRECTION to expand; repeatable"),
    collapse: Optional[list[str]] = typer.Option(None, "--collapse", "-c", help="KEY:DIRECTION to hide; repeatable"),
    svg: Optional[Path] = typer.Option(None, "--svg", help="Write the graph as SVG"),
    json_out: Optional[Path] = typer.Option(None, "--json", help="Write the positioned graph as JSON"),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to lineage_graph.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Load lineage around FQN, apply expand steps then collapse steps, and print the result."""
    _configure_logging(verbose)
    settings = _settings(config)
    expand_steps = [_parse_step(raw) for raw in expand or []]
    collapse_steps = [_parse_step(raw) for raw in collapse or []]

    try:
        positioned = asyncio.run(_show(settings, fqn, entity_type, expand_steps, collapse_steps))
    except (LineageError, KeyError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    if positioned is None:
        raise typer.Exit(1)

    _print_table(positioned)
    if svg is not None:
        svg.write_text(SvgRenderer(settings.layout.direction).render(positioned))
        console.print(f"[green]SVG written to[/green] {svg}")
    if json_out is not None:
        json_out.write_text(json.dumps(_positioned_dict(positioned), indent=2))
        console.print(f"[green]JSON written to[/green] {json_out}")


async def _check(settings: Settings) -> bool:
    async with OpenMetadataClient(settings) as client:
        return await client.test_connection()


@app.command()
def check(
    config: Optional[Path] = typer.Option(None, "--config", help="Path to lineage_graph.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Test the connection to the metadata service."""
    _configure_logging(verbose)
    settings = _settings(config)
    if asyncio.run(_check(settings)):
        console.print(f"[green]Connected to[/green] {settings.openmetadata_url}")
        return
    console.print(f"[red]Cannot reach[/red] {settings.openmetadata_url}")
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
