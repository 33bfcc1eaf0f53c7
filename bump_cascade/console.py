"""Terminal output helpers.

Progress and diagnostics go to stderr so that stdout only carries the
records a command was asked to print and can be piped into other tools.
"""

from __future__ import annotations

import click


def step(msg: str) -> None:
    """Print a visually distinct step header."""
    click.echo(f"{'─' * 60}\n{msg}\n{'─' * 60}", err=True)


def info(msg: str) -> None:
    click.echo(f"  {msg}", err=True)


def warn(msg: str) -> None:
    """Report a problem that does not stop the command."""
    click.echo(f"error: {msg}", err=True)


def separator() -> None:
    """Blank line between groups of records, kept out of stdout."""
    click.echo("", err=True)
