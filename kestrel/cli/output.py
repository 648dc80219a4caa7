"""
Kestrel CLI - styled output primitives built on Click.

    success(), error(), warning(), info(), kv(), table()

click.style handles NO_COLOR / TERM=dumb.
"""

from __future__ import annotations

from typing import Sequence

import click

_L_H = "\u2500"    # ─
_CHECK = "\u2713"  # ✓
_CROSS = "\u2717"  # ✗


def success(message: str) -> None:
    click.echo(click.style(f"{_CHECK} {message}", fg="green"))


def error(message: str) -> None:
    click.echo(click.style(f"{_CROSS} {message}", fg="red"), err=True)


def warning(message: str) -> None:
    click.echo(click.style(message, fg="yellow"))


def info(message: str) -> None:
    click.echo(click.style(message, fg="cyan"))


def kv(key: str, value: str, *, key_width: int = 16, indent: int = 2) -> None:
    """
    Print an aligned key-value pair.

        Version:        1.0.0
    """
    padding = " " * max(1, key_width - len(key) - 1)
    click.echo(f"{' ' * indent}{key}:{padding}{click.style(str(value), fg='cyan')}")


def table(headers: Sequence[str], rows: Sequence[Sequence[str]], *, indent: int = 2) -> None:
    """
    Print a minimal aligned table.

        Method  Path          Action
        ─────────────────────────────────────
        GET     /users/{id}   UserController@show
    """
    prefix = " " * indent
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(str(cell)))
    widths = [w + 2 for w in widths]

    header = "".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    click.echo(f"{prefix}{click.style(header, fg='cyan', bold=True)}")
    click.echo(f"{prefix}{click.style(_L_H * sum(widths), dim=True)}")
    for row in rows:
        click.echo(prefix + "".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row)).rstrip())
