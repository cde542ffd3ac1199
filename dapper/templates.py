"""Template rendering engine for Dapper.

This module uses Jinja2 to expand content in two stages:

1. The page body (converted to HTML first when it is Markdown) is expanded as
   a template with only ``page`` in scope, so content can refer to its own
   front matter.
2. When the page names a layout, ``<layout_dir>/<layout>.html`` is expanded
   with both ``site`` and ``page`` in scope, and ``page.content`` holds the
   result of stage 1.

Missing variables at any depth render as an empty string, and nothing is
autoescaped: ``{{ page.content }}`` injects HTML verbatim.

Key classes:
- RenderContext: The ``site`` and ``page`` mappings for one item.
- TemplateEngine: Renders ContentItems for one SiteConfig.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import (
    ChainableUndefined,
    Environment,
    FileSystemLoader,
    Template,
    TemplateNotFound,
    TemplateSyntaxError,
)

from .config import SiteConfig
from .content import ContentItem
from .errors import LayoutNotFoundError, RenderError
from .renderers import MarkdownRenderer

LAYOUT_SUFFIX = ".html"


@dataclass
class RenderContext:
    """Variables visible to templates while rendering one item.

    Attributes:
        site: Site name plus extra configuration keys.
        page: Front matter plus the computed ``content`` key.
    """

    site: dict[str, Any] = field(default_factory=dict)
    page: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {"site": self.site, "page": self.page}


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if isinstance(exc, TemplateSyntaxError):
        return f"Template syntax error on line {exc.lineno}: {exc.message}"
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"


class TemplateEngine:
    """Two-stage template renderer using Jinja2.

    Attributes:
        config: Site configuration the engine renders for.
        markdown: Markdown to HTML converter.
        env: Jinja2 environment with the layout directory as its loader root.
    """

    def __init__(self, config: SiteConfig, markdown: MarkdownRenderer | None = None):
        """Initialize the template engine.

        Args:
            config: Site configuration.
            markdown: Optional custom Markdown renderer.
        """
        self.config = config
        self.markdown = markdown or MarkdownRenderer()
        self.env = Environment(
            loader=FileSystemLoader(str(config.layout_dir)),
            autoescape=False,
            undefined=ChainableUndefined,
            keep_trailing_newline=True,
        )
        self._site = config.site_context()

    def context_for(self, item: ContentItem) -> RenderContext:
        """Build the render context for an item, with ``content`` set to its raw body."""
        page = dict(item.front_matter)
        page["content"] = item.body
        return RenderContext(site=dict(self._site), page=page)

    def render(self, item: ContentItem) -> str:
        """Render an item to its final output text.

        Args:
            item: Parsed content item.

        Returns:
            Rendered text: the expanded body, wrapped in its layout when the
            item names one.

        Raises:
            LayoutNotFoundError: If the named layout file does not exist.
            RenderError: If a template fails to compile or evaluate.
        """
        context = self.context_for(item)
        if item.is_markdown:
            context.page["content"] = self.markdown.render(item.body)

        content = self._render_body(item, context)
        context.page["content"] = content

        layout = item.layout
        if layout is None:
            return content
        template = self._resolve_layout_template(layout, item.source_path)
        try:
            return template.render(**context.as_dict())
        except Exception as exc:
            raise RenderError(
                item.source_path,
                f"in layout '{layout}': {_format_error_message(exc)}",
                exc,
            ) from exc

    def _render_body(self, item: ContentItem, context: RenderContext) -> str:
        """Expand the page content with only ``page`` in scope."""
        try:
            return self.render_string(context.page["content"], {"page": context.page})
        except Exception as exc:
            raise RenderError(item.source_path, _format_error_message(exc), exc) from exc

    def _resolve_layout_template(self, layout: str, source_path: Path) -> Template:
        """Load the layout template named by a page.

        Args:
            layout: Layout basename without extension.
            source_path: Page path reported in errors.

        Returns:
            Jinja2 Template object.
        """
        name = f"{layout}{LAYOUT_SUFFIX}"
        try:
            return self.env.get_template(name)
        except TemplateNotFound as exc:
            raise LayoutNotFoundError(
                source_path,
                f"layout '{layout}' not found at {self.config.layout_dir / name}",
                exc,
            ) from exc
        except TemplateSyntaxError as exc:
            raise RenderError(
                source_path,
                f"in layout '{layout}': {_format_error_message(exc)}",
                exc,
            ) from exc

    def render_string(self, template: str, context: dict[str, Any]) -> str:
        """Render a template string.

        Args:
            template: Template string to render.
            context: Variables to make available in the template.

        Returns:
            Rendered string.
        """
        tmpl = self.env.from_string(template)
        return tmpl.render(**context)
