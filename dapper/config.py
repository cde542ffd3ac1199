"""Site configuration for Dapper.

The configuration lives in a single YAML mapping (``_config.yml`` by default).
Four keys have meaning to the build; every other top-level key is passed
through to templates as ``site.<key>``:

- name: Site name, exposed as ``site.name``.
- source: Directory holding content files (default ``_source``).
- layout: Directory holding layout templates (default ``_layout``).
- output: Directory the built site is written to (default ``_output``).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from .errors import ConfigError

DEFAULT_CONFIG_FILE = "_config.yml"

DEFAULT_CONFIG = {
    "name": "",
    "source": "_source",
    "layout": "_layout",
    "output": "_output",
}


@dataclass(frozen=True)
class SiteConfig:
    """Resolved configuration for one build.

    Attributes:
        name: Human-readable site name.
        source_dir: Directory with content files.
        layout_dir: Directory with layout templates.
        output_dir: Directory the site is written to.
        config_path: Path of the configuration file (which may not exist).
        extra: Any other top-level keys from the configuration file.
    """

    name: str = ""
    source_dir: Path = Path(DEFAULT_CONFIG["source"])
    layout_dir: Path = Path(DEFAULT_CONFIG["layout"])
    output_dir: Path = Path(DEFAULT_CONFIG["output"])
    config_path: Path = Path(DEFAULT_CONFIG_FILE)
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def site_context(self) -> dict[str, Any]:
        """Return the ``site`` mapping exposed to layout templates."""
        context = dict(self.extra)
        context["name"] = self.name
        return context

    def watched_paths(self) -> list[Path]:
        """Return the roots the watcher observes (never the output directory)."""
        return [self.source_dir, self.layout_dir, self.config_path]


def read_config_file(config_path: Path) -> dict[str, Any]:
    """Read the raw configuration mapping from disk.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        The parsed mapping, or an empty dict when the file does not exist or
        is empty.

    Raises:
        ConfigError: If the file cannot be read, is not valid YAML, or does
            not contain a mapping.
    """
    if not config_path.exists():
        return {}
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(config_path, f"invalid YAML: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(config_path, f"cannot read file: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(
            config_path,
            f"expected a mapping at the top level, got {type(loaded).__name__}",
        )
    return loaded


def load_config(
    config_path: Path | str = DEFAULT_CONFIG_FILE,
    root: Path | None = None,
    source: Path | str | None = None,
    layout: Path | str | None = None,
    output: Path | str | None = None,
) -> SiteConfig:
    """Load site configuration, applying defaults and overrides.

    Overrides win over values from the file, which win over defaults.
    Relative paths are resolved against ``root`` (the current working
    directory when omitted).

    Args:
        config_path: Path to the configuration file.
        root: Project root for relative paths.
        source: Optional override for the source directory.
        layout: Optional override for the layout directory.
        output: Optional override for the output directory.

    Returns:
        A frozen SiteConfig.

    Raises:
        ConfigError: If the configuration file exists but cannot be parsed.
    """
    base = Path(root) if root is not None else Path.cwd()
    resolved_config = base / config_path
    raw = read_config_file(resolved_config)

    settings = DEFAULT_CONFIG.copy()
    extra: dict[str, Any] = {}
    for key, value in raw.items():
        if not isinstance(key, str):
            raise ConfigError(resolved_config, f"config keys must be strings: {key!r}")
        if key in settings:
            settings[key] = value
        else:
            extra[key] = value

    overrides = {"source": source, "layout": layout, "output": output}
    for key, value in overrides.items():
        if value is not None:
            settings[key] = value

    for key in ("source", "layout", "output"):
        value = settings[key]
        if not isinstance(value, (str, Path)) or not str(value):
            raise ConfigError(
                resolved_config, f"'{key}' must be a non-empty path, got {value!r}"
            )

    name = settings["name"]
    return SiteConfig(
        name="" if name is None else str(name),
        source_dir=base / settings["source"],
        layout_dir=base / settings["layout"],
        output_dir=base / settings["output"],
        config_path=resolved_config,
        extra=MappingProxyType(extra),
    )
