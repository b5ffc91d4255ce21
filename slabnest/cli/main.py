"""Main CLI entry point for SlabNest."""

import click
from rich.console import Console

from slabnest import __version__
from slabnest.utils import setup_logging

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="SlabNest")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """SlabNest - stone slab nesting.

    Lays out cut parts on slabs to minimize waste, honoring kerf and
    locked parts.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging("DEBUG" if verbose else "WARNING")


# Import and register command groups
from slabnest.cli.nesting_cmd import optimize, move, serve

cli.add_command(optimize)
cli.add_command(move)
cli.add_command(serve)


@cli.command()
def version() -> None:
    """Show the installed version."""
    console.print(f"SlabNest {__version__}")


@cli.command()
def status() -> None:
    """Show configuration."""
    from slabnest.config import get_settings

    settings = get_settings()

    console.print("[bold]SlabNest Status[/bold]")
    console.print(f"Version: {__version__}")
    console.print()
    console.print("[bold]Nesting:[/bold]")
    timeout = settings.optimize_timeout_seconds
    console.print(f"  Optimize timeout: {f'{timeout:.0f}s' if timeout else '[yellow]disabled[/yellow]'}")
    console.print()
    console.print("[bold]API:[/bold]")
    console.print(f"  Listen: {settings.api_host}:{settings.api_port}")
    console.print(f"  Log format: {settings.log_format}")


if __name__ == "__main__":
    cli()
