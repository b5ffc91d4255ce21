"""Command line interface for SlabNest."""

from slabnest.cli.main import cli

__all__ = ["cli"]
