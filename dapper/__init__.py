"""Dapper static site generator.

Dapper reads Markdown and HTML content with YAML front matter from a source
directory, expands it through Jinja2 page and layout templates, and mirrors the
result into an output directory. A polling watcher and a small development
server provide the local authoring loop.

The main entry point is the CLI module, which provides commands for
scaffolding new sites, building them once, and watching or serving them while
they are edited.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
