"""Console reporting for Dapper.

Build summaries go to stdout; errors go to stderr, styled with click so they
stand out in a terminal.
"""

from __future__ import annotations

import click

from .errors import DapperError, PageError
from .walker import BuildReport


def echo_page_error(error: PageError) -> None:
    """Print one per-file error."""
    label = type(error).__name__
    click.echo(click.style(f"  {label}:", fg="yellow", bold=True), err=True, nl=False)
    click.echo(click.style(f" {error.source_path}", fg="yellow"), err=True)
    click.echo(click.style(f"    {error.message}", fg="white"), err=True)


def echo_report(report: BuildReport) -> None:
    """Print a build summary followed by its per-file errors."""
    if report.errors:
        click.echo(click.style(report.summary(), fg="yellow"))
        for error in report.errors:
            echo_page_error(error)
    else:
        click.echo(report.summary())


def echo_fatal(error: DapperError) -> None:
    """Print an error that aborted a build."""
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    path = getattr(error, "path", None) or getattr(error, "source_path", None)
    if path is not None:
        click.echo(click.style(f"  File: {path}", fg="yellow"), err=True)
    message = getattr(error, "message", str(error))
    click.echo(click.style(f"  Error: {message}", fg="white"), err=True)
