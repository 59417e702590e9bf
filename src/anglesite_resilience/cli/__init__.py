"""Command-line interface for anglesite-resilience."""

from anglesite_resilience.cli.main import cli, main

__all__ = ["cli", "main"]
