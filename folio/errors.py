"""Error taxonomy for Folio.

Load-time and startup-time errors abort the process with a diagnostic.
Per-artifact errors are caught at the artifact boundary by the build graph
and recorded in the build report.

Classes:
    FolioError: Base class carrying optional source file context.
    ContentError: Malformed or duplicate content; fatal at load.
    TemplateError: Template compile failure (fatal) or runtime failure (per artifact).
    RenderError: Malformed markdown or custom markup; recovered per artifact.
    WatchError: Filesystem observer failure.
    ServeError: Dev server bind or I/O failure.
"""

from __future__ import annotations

from pathlib import Path


class FolioError(Exception):
    """Base error with file context.

    Attributes:
        message: Human-readable error message.
        source_path: Path to the source file that caused the error, if known.
        original_error: The original exception that was caught, if any.
    """

    def __init__(
        self,
        message: str,
        source_path: Path | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.source_path = source_path
        self.original_error = original_error
        if source_path is not None:
            super().__init__(f"{source_path}: {message}")
        else:
            super().__init__(message)


class ContentError(FolioError):
    """Malformed content tree: duplicate slugs, missing fields, unreadable files."""


class TemplateError(FolioError):
    """Template compile failure or template runtime failure."""


class RenderError(FolioError):
    """Malformed markdown or custom markup inside an article."""


class WatchError(FolioError):
    """The filesystem observer failed or the watch target disappeared."""


class ServeError(FolioError):
    """The dev server could not bind or serve."""
