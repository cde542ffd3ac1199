"""Command-line interface for Dapper.

This module defines the CLI commands using Click framework.

Commands:
- init: Scaffold a new site.
- build: Build the site into the output directory.
- watch: Rebuild the site whenever sources change.
- serve: Serve the output directory and rebuild on change.

An unknown command prints the help text instead of an error.
"""

from __future__ import annotations

import functools
import shutil
from pathlib import Path

import click

from . import __version__
from .config import DEFAULT_CONFIG_FILE, SiteConfig, load_config
from .console import echo_fatal, echo_report
from .errors import DapperError

# Path to the default template directory
_TEMPLATES_DIR = Path(__file__).parent / "templates" / "default"

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


class _HelpFallbackGroup(click.Group):
    """Command group that shows help for unrecognized commands."""

    def resolve_command(self, ctx, args):
        if args and self.get_command(ctx, args[0]) is None:
            click.echo(ctx.get_help())
            ctx.exit(0)
        return super().resolve_command(ctx, args)


def _site_options(func):
    """Attach the options shared by build, watch and serve."""
    options = [
        click.option(
            "-c",
            "--config",
            "config_file",
            default=DEFAULT_CONFIG_FILE,
            show_default=True,
            help="Configuration file",
        ),
        click.option("-s", "--source", default=None, help="Source directory (overrides config)"),
        click.option("-l", "--layout", default=None, help="Layout directory (overrides config)"),
        click.option("-o", "--output", default=None, help="Output directory (overrides config)"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _config_loader(config_file: str, source, layout, output):
    return functools.partial(
        load_config,
        config_file,
        root=Path.cwd(),
        source=source,
        layout=layout,
        output=output,
    )


def _load_or_exit(loader) -> SiteConfig:
    try:
        return loader()
    except DapperError as exc:
        echo_fatal(exc)
        raise SystemExit(1) from None


@click.group(
    cls=_HelpFallbackGroup,
    context_settings=CONTEXT_SETTINGS,
    invoke_without_command=True,
)
@click.version_option(__version__, "-v", "--version", prog_name="dapper")
@click.pass_context
def cli(ctx: click.Context):
    """Dapper static site generator."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument(
    "directory",
    default=".",
    type=click.Path(file_okay=False, path_type=Path),
)
def init(directory: Path):
    """Scaffold a new site in DIRECTORY (default: current directory)."""
    target = directory.resolve()
    existing = [rel for rel in _scaffold_files() if (target / rel).exists()]
    if existing:
        names = ", ".join(str(rel) for rel in existing)
        raise click.ClickException(f"Refusing to overwrite existing files: {names}")
    _scaffold(target)
    click.echo(f"New Dapper site created at {target}")


@cli.command()
@_site_options
@click.option("--clean", is_flag=True, help="Empty the output directory first")
@click.option("--strict", is_flag=True, help="Fail if any file could not be built")
def build(config_file: str, source, layout, output, clean: bool, strict: bool):
    """Build the site into the output directory."""
    from .build import build_site

    config = _load_or_exit(_config_loader(config_file, source, layout, output))
    try:
        report = build_site(config, clean_output=clean)
    except DapperError as exc:
        echo_fatal(exc)
        raise SystemExit(1) from None
    echo_report(report)
    if strict and report.errors:
        raise SystemExit(1)


@cli.command()
@_site_options
@click.option(
    "--interval",
    type=float,
    default=1.0,
    show_default=True,
    help="Seconds between change checks",
)
def watch(config_file: str, source, layout, output, interval: float):
    """Build the site, then rebuild whenever sources change."""
    from .build import build_site
    from .watcher import Watcher

    loader = _config_loader(config_file, source, layout, output)
    config = _load_or_exit(loader)
    try:
        echo_report(build_site(config))
    except DapperError as exc:
        echo_fatal(exc)
        raise SystemExit(1) from None

    watcher = Watcher(config, interval=interval, use_events=True, loader=loader)
    watcher.init()
    click.echo(f"Watching {config.source_dir} for changes. Press Ctrl+C to stop.")
    try:
        watcher.run()
    except KeyboardInterrupt:
        click.echo("Stopping...")
    finally:
        watcher.stop()


@cli.command()
@_site_options
@click.option("--port", type=int, default=None, help="Port to run the dev server (default 8000)")
@click.option(
    "--ws-port",
    type=int,
    default=None,
    help="Port for the live reload websocket server (default: port + 1)",
)
@click.option(
    "--interval",
    type=float,
    default=1.0,
    show_default=True,
    help="Seconds between change checks",
)
def serve(
    config_file: str,
    source,
    layout,
    output,
    port: int | None,
    ws_port: int | None,
    interval: float,
):
    """Serve the output directory and rebuild on change."""
    from .server import DevServer

    loader = _config_loader(config_file, source, layout, output)
    config = _load_or_exit(loader)
    server = DevServer(
        config, http_port=port, ws_port=ws_port, interval=interval, loader=loader
    )
    try:
        server.start()
    except DapperError as exc:
        echo_fatal(exc)
        raise SystemExit(1) from None


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold_files() -> list[Path]:
    """Paths, relative to a new site's root, that init writes."""
    return sorted(
        path.relative_to(_TEMPLATES_DIR)
        for path in _TEMPLATES_DIR.rglob("*")
        if path.is_file()
    )


def _scaffold(root: Path) -> None:
    """Create the files for a new Dapper site.

    Args:
        root: Root directory for the new site.
    """
    for rel_path in _scaffold_files():
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(_TEMPLATES_DIR / rel_path, dest_path)
