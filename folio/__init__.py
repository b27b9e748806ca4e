"""Folio magazine site compiler.

This package builds a static magazine site (issues, articles, authors) from a
content tree using Markdown and Jinja2 templates. It can also serve the build
with live reload while watching the source tree for changes.

The main entry point is the CLI module, which provides the build and serve commands.

Pipeline:
- content: loads the Site model from folio.yaml and issue manifests.
- graph: tracks every output artifact and its source dependencies, and re-renders
  only what changed using a bounded worker pool.
- snapshot: immutable output bundle published atomically to the dev server.
- watcher / coordinator / server: watch, rebuild, serve and reload.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
