"""Source tree traversal for Dapper.

The walker mirrors the source directory into the output directory, one file
at a time and in lexicographic order:

- Content files (Markdown and HTML) are parsed, rendered and written as text.
  Markdown files get an ``.html`` extension.
- Every other file is copied byte for byte.
- Entries directly under the source root whose names start with ``_`` or
  ``.`` are skipped. Deeper entries with such names are processed normally.

A failing file never stops the walk. Its error is recorded in the
BuildReport and the walker carries on with the next file.
"""

from __future__ import annotations

import shutil
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path

from .config import SiteConfig
from .content import load_item, output_path_for
from .errors import PageError, ReadError, RenderError, WriteError
from .templates import TemplateEngine
from .utils import is_content_file, is_excluded_name


@dataclass
class BuildReport:
    """Result of one walk over the source tree.

    Attributes:
        output_dir: Directory the site was written to.
        processed: Number of files visited.
        rendered: Number of content files rendered and written.
        copied: Number of static files copied.
        errors: Per-file errors, in traversal order.
        cancelled: Whether the walk stopped early on request.
    """

    output_dir: Path
    processed: int = 0
    rendered: int = 0
    copied: int = 0
    errors: list[PageError] = field(default_factory=list)
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        """One-line description of the build, for console output."""
        text = (
            f"Processed {self.processed} files "
            f"({self.rendered} rendered, {self.copied} copied) into {self.output_dir}"
        )
        if self.errors:
            noun = "error" if len(self.errors) == 1 else "errors"
            text += f" with {len(self.errors)} {noun}"
        if self.cancelled:
            text += " (cancelled)"
        return text


class TreeWalker:
    """Walks a source tree and writes the mirrored output tree.

    Attributes:
        source_dir: Directory with content files.
        output_dir: Directory the output is written to.
        engine: Template engine used for content files.
    """

    def __init__(
        self,
        source_dir: Path,
        output_dir: Path,
        engine: TemplateEngine,
        cancel: threading.Event | None = None,
    ):
        """Initialize the walker.

        Args:
            source_dir: Directory with content files.
            output_dir: Directory the output is written to.
            engine: Template engine used for content files.
            cancel: Optional event; when set, the walk stops before the next file.
        """
        self.source_dir = source_dir
        self.output_dir = output_dir
        self.engine = engine
        self.cancel = cancel
        self._written: dict[Path, Path] = {}

    def walk(self) -> BuildReport:
        """Process the whole source tree.

        Returns:
            BuildReport with counts and per-file errors.
        """
        report = BuildReport(output_dir=self.output_dir)
        self._written = {}
        self._walk_dir(self.source_dir, report, top_level=True)
        return report

    def _walk_dir(self, directory: Path, report: BuildReport, top_level: bool) -> None:
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            rel = directory.relative_to(self.source_dir)
            report.errors.append(ReadError(rel, f"cannot list directory: {exc}", exc))
            return

        for entry in entries:
            if report.cancelled:
                return
            if top_level and is_excluded_name(entry.name):
                continue
            if entry.is_dir():
                self._walk_dir(entry, report, top_level=False)
                continue
            if self.cancel is not None and self.cancel.is_set():
                report.cancelled = True
                return
            report.processed += 1
            try:
                self._process_file(entry, report)
            except PageError as exc:
                report.errors.append(exc)
            except Exception as exc:
                rel = entry.relative_to(self.source_dir)
                report.errors.append(
                    RenderError(rel, f"unexpected error: {type(exc).__name__}: {exc}", exc)
                )

    def _process_file(self, path: Path, report: BuildReport) -> None:
        rel = path.relative_to(self.source_dir)
        if not is_content_file(path):
            self._copy(path, self.output_dir / rel, rel)
            report.copied += 1
            return

        item = load_item(self.source_dir, path)
        rendered = self.engine.render(item)
        self._write(self.output_dir / output_path_for(rel), rendered, rel)
        report.rendered += 1

    def _claim(self, target: Path, rel: Path) -> None:
        """Reserve an output path for one source file per walk."""
        owner = self._written.get(target)
        if owner is not None:
            raise WriteError(
                rel, f"output {target} was already written from {owner} in this build"
            )
        self._written[target] = rel

    def _write(self, target: Path, text: str, rel: Path) -> None:
        # Encode up front so an unencodable page never truncates its target.
        try:
            data = text.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise WriteError(rel, f"cannot encode output as UTF-8: {exc}", exc) from exc
        self._claim(target, rel)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as f:
                f.write(data)
        except OSError as exc:
            raise WriteError(rel, f"cannot write {target}: {exc}", exc) from exc

    def _copy(self, source: Path, target: Path, rel: Path) -> None:
        self._claim(target, rel)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WriteError(rel, f"cannot create {target.parent}: {exc}", exc) from exc
        try:
            shutil.copyfile(source, target)
        except FileNotFoundError as exc:
            raise ReadError(rel, f"file vanished during build: {exc}", exc) from exc
        except OSError as exc:
            raise WriteError(rel, f"cannot copy to {target}: {exc}", exc) from exc


def walk(
    source_dir: Path,
    output_dir: Path,
    layout_dir: Path,
    config: SiteConfig,
    cancel: threading.Event | None = None,
) -> BuildReport:
    """Render and copy every file under ``source_dir`` into ``output_dir``.

    Args:
        source_dir: Directory with content files.
        output_dir: Directory the output is written to.
        layout_dir: Directory with layout templates.
        config: Site configuration exposed to layouts.
        cancel: Optional event that stops the walk between files.

    Returns:
        BuildReport with counts and per-file errors.
    """
    if layout_dir != config.layout_dir:
        config = replace(config, layout_dir=layout_dir)
    engine = TemplateEngine(config)
    return TreeWalker(source_dir, output_dir, engine, cancel=cancel).walk()
