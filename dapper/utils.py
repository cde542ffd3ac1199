"""Utility functions for Dapper.

Key functions:
    is_markdown: Check if a path is a Markdown file.
    is_html: Check if a path is an HTML content file.
    is_content_file: Check if a path is parsed and rendered rather than copied.
    is_excluded_name: Check if a top-level source entry is skipped.
    is_within: Check if a path lies inside a directory.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import shutil
from pathlib import Path

MARKDOWN_SUFFIXES = (".md", ".markdown")
HTML_SUFFIXES = (".html", ".htm")


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has a .md or .markdown extension (case-insensitive).
    """
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def is_html(path: Path) -> bool:
    """Check if a path is an HTML content file.

    Args:
        path: Path to check.

    Returns:
        True if the file has a .html or .htm extension (case-insensitive).
    """
    return path.suffix.lower() in HTML_SUFFIXES


def is_content_file(path: Path) -> bool:
    """Check if a file goes through front matter parsing and templating.

    Files that are not content are static and copied byte for byte.
    """
    return is_markdown(path) or is_html(path)


def is_excluded_name(name: str) -> bool:
    """Check if a direct child of the source root is skipped.

    Names starting with ``_`` or ``.`` are never treated as content.

    Examples:
        >>> is_excluded_name("_layout")
        True

        >>> is_excluded_name("posts")
        False
    """
    return name.startswith(("_", "."))


def is_within(path: Path, parent: Path) -> bool:
    """Check if ``path`` is ``parent`` or lies somewhere below it."""
    try:
        path.resolve().relative_to(parent.resolve())
    except ValueError:
        return False
    return True


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes it with its contents, then
    creates it again.

    Args:
        path: Directory path to clean or create.

    Raises:
        OSError: If the existing contents cannot be removed.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)
