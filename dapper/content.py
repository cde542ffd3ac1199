"""Content parsing for Dapper.

This module turns a source file into a ContentItem: an optional YAML front
matter mapping plus the raw body that follows it.

A front matter block starts on the first line of the file with a line that is
exactly ``---`` and ends at the next line that is exactly ``---``::

    ---
    layout: index
    title: Welcome
    ---
    Hello world.

Key pieces:
- ContentItem: Dataclass for one parsed source file.
- split_front_matter: Split text into (front matter, body).
- parse_item: Build a ContentItem from raw bytes.
- load_item: Read and parse a file below the source root.
- output_path_for: Map a source-relative path to its output-relative path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Union

import yaml

from .errors import ParseError, ReadError
from .utils import is_markdown

FRONT_MATTER_DELIMITER = "---"

# Values YAML front matter can produce; templates walk these with dotted lookup.
FrontMatterValue = Union[
    str, int, float, bool, None, date, list["FrontMatterValue"], dict[str, "FrontMatterValue"]
]


@dataclass
class ContentItem:
    """A parsed content file.

    Attributes:
        source_path: Path relative to the source directory.
        front_matter: Mapping parsed from the front matter block (may be empty).
        body: Raw text after the front matter block.
        is_markdown: Whether the body is converted from Markdown to HTML.
    """

    source_path: Path
    body: str
    front_matter: dict[str, FrontMatterValue] = field(default_factory=dict)
    is_markdown: bool = False

    @property
    def layout(self) -> str | None:
        """Layout name from front matter, if any."""
        value = self.front_matter.get("layout")
        if value is None or value == "":
            return None
        return str(value)


def _strip_eol(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line


def split_front_matter(
    text: str, source_path: Path | None = None
) -> tuple[dict[str, Any], str]:
    """Split text into front matter and body.

    Args:
        text: Decoded file contents.
        source_path: Path reported in errors.

    Returns:
        Tuple of (front matter mapping, body). Text without a leading
        ``---`` line has an empty mapping and is entirely body.

    Raises:
        ParseError: If the block is never closed, or if it does not hold a
            string-keyed YAML mapping.
    """
    where = source_path or Path("<string>")
    lines = text.split("\n")
    if _strip_eol(lines[0]) != FRONT_MATTER_DELIMITER:
        return {}, text

    for index in range(1, len(lines)):
        if _strip_eol(lines[index]) == FRONT_MATTER_DELIMITER:
            block = "\n".join(lines[1:index])
            body = "\n".join(lines[index + 1 :])
            break
    else:
        raise ParseError(where, "front matter block opened with '---' but never closed")

    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        raise ParseError(where, f"invalid YAML in front matter: {exc}", exc) from exc
    except RecursionError as exc:
        raise ParseError(where, "front matter is nested too deeply", exc) from exc
    if data is None:
        return {}, body
    if not isinstance(data, dict):
        raise ParseError(
            where, f"front matter must be a mapping, got {type(data).__name__}"
        )
    for key in data:
        if not isinstance(key, str):
            raise ParseError(where, f"front matter keys must be strings: {key!r}")
    return data, body


def parse_item(source_path: Path, raw: bytes) -> ContentItem:
    """Build a ContentItem from the raw bytes of a content file.

    Args:
        source_path: Path relative to the source directory.
        raw: File contents.

    Returns:
        Parsed ContentItem.

    Raises:
        ParseError: If the file is not UTF-8 or its front matter is malformed.
    """
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ParseError(source_path, f"not valid UTF-8: {exc}", exc) from exc
    front_matter, body = split_front_matter(text, source_path)
    return ContentItem(
        source_path=source_path,
        body=body,
        front_matter=front_matter,
        is_markdown=is_markdown(source_path),
    )


def load_item(source_root: Path, path: Path) -> ContentItem:
    """Read and parse a content file below ``source_root``."""
    rel = path.relative_to(source_root)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise ReadError(rel, f"cannot read file: {exc}", exc) from exc
    return parse_item(rel, raw)


def output_path_for(source_path: Path) -> Path:
    """Return the output path for a source-relative content path.

    Markdown files get an ``.html`` extension; everything else keeps its name.

    Examples:
        >>> output_path_for(Path("blog/post.md"))
        PosixPath('blog/post.html')
    """
    if is_markdown(source_path):
        return source_path.with_suffix(".html")
    return source_path
