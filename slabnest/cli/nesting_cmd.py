"""Nesting CLI commands for SlabNest."""

import sys
from pathlib import Path
from typing import Optional, Sequence

import click
from rich.console import Console
from rich.table import Table

from slabnest.nesting.errors import EngineFault, InvalidRequest, NestingError
from slabnest.nesting.models import NestingResult, PlacedPart, Slab
from slabnest.utils import format_area

console = Console()


def _placements_table(placements: Sequence[PlacedPart], slabs: Sequence[Slab]) -> Table:
    names = {s.id: s.name for s in slabs}
    table = Table(title="Placements")
    table.add_column("Part", style="cyan")
    table.add_column("Slab", style="green")
    table.add_column("X", justify="right")
    table.add_column("Y", justify="right")
    table.add_column("Size", justify="right", style="yellow")
    table.add_column("Rotation", justify="right", style="magenta")

    for p in placements:
        table.add_row(
            p.part_id,
            names.get(p.slab_id, p.slab_id),
            f"{p.x:g}",
            f"{p.y:g}",
            f"{p.width:g} x {p.height:g}",
            f"{p.rotation}°",
        )
    return table


def _usage_table(result: NestingResult, slabs: Sequence[Slab]) -> Table:
    names = {s.id: s.name for s in slabs}
    table = Table(title="Slab Usage")
    table.add_column("Slab", style="green")
    table.add_column("Parts", justify="right")
    table.add_column("Used", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Waste", justify="right", style="yellow")

    for usage in result.slab_usage:
        table.add_row(
            names.get(usage.slab_id, usage.slab_id),
            str(len(result.placements_for_slab(usage.slab_id))),
            format_area(usage.used_area),
            format_area(usage.total_area),
            f"{usage.waste_percentage:.1f}%",
        )
    return table


def _fail(message: str) -> None:
    console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


@click.command()
@click.argument("request_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--kerf", "-k", type=float, help="Override the request's kerf width (mm)")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the result JSON here")
@click.option("--layout", is_flag=True, help="Print a text cut sheet")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def optimize(
    request_path: str,
    kerf: Optional[float],
    output: Optional[str],
    layout: bool,
    as_json: bool,
) -> None:
    """Lay out the parts of a request file on its slabs.

    Example: slabnest optimize kitchen.json --kerf 4
    """
    from slabnest.nesting.packer import SlabPacker, export_layout
    from slabnest.nesting.serialization import load_request_file, result_to_json

    try:
        request = load_request_file(request_path)
        kerf_width = request.kerf_width if kerf is None else kerf
        result = SlabPacker().optimize(request.parts, request.slabs, kerf_width)
    except InvalidRequest as e:
        _fail(str(e))
    except EngineFault as e:
        _fail(f"Optimization failed: {e}")

    text = result_to_json(result)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")

    if as_json:
        click.echo(text)
        return

    console.print(_placements_table(result.placements, request.slabs))
    console.print(_usage_table(result, request.slabs))

    if layout:
        click.echo(export_layout(result, request.slabs))

    if result.unplaced_parts:
        console.print(
            f"[yellow]⚠ {len(result.unplaced_parts)} part(s) could not be placed: "
            f"{', '.join(result.unplaced_parts)}[/yellow]"
        )
    else:
        console.print("[green]✓ Optimization complete[/green]")
    if output:
        console.print(f"[dim]Result written to {output}[/dim]")


@click.command()
@click.argument("request_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("result_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("part_id")
@click.option("--x", type=float, help="New x position (mm)")
@click.option("--y", type=float, help="New y position (mm)")
@click.option("--rotation", type=click.Choice(["0", "90", "180", "270"]), help="New rotation")
@click.option("--slab", "slab_id", help="Move to another slab")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the new placements and parts JSON here")
def move(
    request_path: str,
    result_path: str,
    part_id: str,
    x: Optional[float],
    y: Optional[float],
    rotation: Optional[str],
    slab_id: Optional[str],
    output: Optional[str],
) -> None:
    """Move one part of a saved result and re-flow its slab.

    Example: slabnest move kitchen.json result.json island --x 0 --y 0
    """
    import json

    from slabnest.nesting.editor import PlacementUpdate, update_placement
    from slabnest.nesting.serialization import load_json_file, load_request_file

    try:
        request = load_request_file(request_path)
        result = NestingResult.from_dict(load_json_file(result_path))
    except NestingError as e:
        _fail(str(e))
    except (KeyError, TypeError, ValueError) as e:
        _fail(f"Invalid result file: {e}")

    if result.placement_for(part_id) is None:
        _fail(f"Part {part_id} is not placed in {result_path}")

    updates = PlacementUpdate(
        x=x,
        y=y,
        rotation=int(rotation) if rotation is not None else None,
        slab_id=slab_id,
    )
    try:
        edit = update_placement(
            result.placements, request.parts, request.slabs, part_id, updates, request.kerf_width
        )
    except NestingError as e:
        _fail(str(e))

    console.print(_placements_table(edit.placements, request.slabs))
    if edit.reseated:
        console.print(f"Re-seated: [cyan]{', '.join(edit.reseated)}[/cyan]")
    if edit.stuck:
        console.print(f"[yellow]⚠ No room to re-seat: {', '.join(edit.stuck)}[/yellow]")

    if output:
        Path(output).write_text(json.dumps(edit.to_dict(), indent=2) + "\n", encoding="utf-8")
        console.print(f"[dim]Placements and parts written to {output}[/dim]")


@click.command()
@click.option("--host", help="Bind address (default from settings)")
@click.option("--port", type=int, help="Port (default from settings)")
def serve(host: Optional[str], port: Optional[int]) -> None:
    """Run the HTTP API."""
    import uvicorn

    from slabnest.api import create_app
    from slabnest.config import get_settings

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    console.print(f"[bold]SlabNest API[/bold] on http://{host}:{port}/api/v1/docs")
    uvicorn.run(create_app(), host=host, port=port)
