"""Site building functionality for Dapper.

This module runs one full build pass: it checks the source directory,
prepares the output directory and hands the tree to the walker.

Key functions:
- build_site: Build the site described by a SiteConfig.
- build: Load configuration from disk, then build.
"""

from __future__ import annotations

import threading
from pathlib import Path

from .config import DEFAULT_CONFIG_FILE, SiteConfig, load_config
from .errors import SourceNotFoundError, WriteError
from .utils import ensure_clean_dir
from .walker import BuildReport, walk


def build_site(
    config: SiteConfig,
    clean_output: bool = False,
    output_dir_override: Path | None = None,
    cancel: threading.Event | None = None,
) -> BuildReport:
    """Build the entire static site.

    Args:
        config: Site configuration.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Optional path to write the build output instead of
            the configured output directory.
        cancel: Optional event that stops the build between files.

    Returns:
        BuildReport with counts and per-file errors.

    Raises:
        SourceNotFoundError: If the source directory does not exist. Nothing is
            written in that case.
        WriteError: If the output directory cannot be created.
    """
    if not config.source_dir.is_dir():
        raise SourceNotFoundError(config.source_dir)

    output_dir = output_dir_override or config.output_dir
    try:
        if clean_output:
            ensure_clean_dir(output_dir)
        else:
            output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WriteError(output_dir, f"cannot prepare output directory: {exc}", exc) from exc

    return walk(config.source_dir, output_dir, config.layout_dir, config, cancel=cancel)


def build(
    config_path: Path | str = DEFAULT_CONFIG_FILE,
    root: Path | None = None,
    clean_output: bool = False,
    **overrides,
) -> BuildReport:
    """Load configuration and build the site.

    Args:
        config_path: Path to the configuration file.
        root: Project root for relative paths (defaults to the working directory).
        clean_output: Whether to wipe the output directory before building.
        **overrides: ``source``, ``layout`` or ``output`` overrides.

    Returns:
        BuildReport with counts and per-file errors.

    Raises:
        ConfigError: If the configuration file exists but cannot be parsed.
        SourceNotFoundError: If the source directory does not exist.
    """
    config = load_config(config_path, root=root, **overrides)
    return build_site(config, clean_output=clean_output)
