"""Error types raised while loading configuration and building a site.

Errors come in two families:

- Fatal errors (ConfigError, SourceNotFoundError) abort a build before any
  output is touched and are surfaced to the caller.
- Page errors (subclasses of PageError) belong to a single source file. The
  tree walker records them in the BuildReport and moves on to the next file.
"""

from __future__ import annotations

from pathlib import Path


class DapperError(Exception):
    """Base class for all Dapper errors."""


class ConfigError(DapperError):
    """The configuration file exists but cannot be used.

    Attributes:
        path: Path to the configuration file.
        message: Human-readable error message.
    """

    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class SourceNotFoundError(DapperError):
    """The source directory does not exist."""

    def __init__(self, path: Path):
        self.path = path
        self.message = "source directory not found"
        super().__init__(f"{path}: {self.message}")


class PageError(DapperError):
    """Error while processing one source file.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


class ParseError(PageError):
    """Malformed front matter block."""


class LayoutNotFoundError(PageError):
    """A page names a layout that does not exist in the layout directory."""


class RenderError(PageError):
    """A page or layout template failed to compile or evaluate."""


class ReadError(PageError):
    """A source file or directory could not be read."""


class WriteError(PageError):
    """An output file could not be written."""
