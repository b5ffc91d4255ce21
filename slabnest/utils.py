"""Shared utilities for SlabNest."""

import logging

from rich.console import Console
from rich.logging import RichHandler

# Rich console for pretty output
console = Console()


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Set up logging with Rich handler."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )
    return logging.getLogger("slabnest")


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module."""
    return logging.getLogger(f"slabnest.{name}")


def format_area(area_mm2: float) -> str:
    """Format an area in square millimeters as square meters."""
    return f"{area_mm2 / 1_000_000:.3f} m²"


def format_mm(value: float) -> str:
    """Format a length in millimeters, dropping a trailing .0."""
    if float(value).is_integer():
        return f"{int(value)}mm"
    return f"{value:.1f}mm"
