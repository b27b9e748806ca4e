"""Template rendering engine for Folio.

This module uses Jinja2 to render the bundled page templates. Project
templates in ``<root>/templates`` take precedence over the bundled set, which
is how themes supply header, footer and article-extend overrides.

Templates never see ambient content state. Each render call receives two
capability hooks in its context:
- ``markdown(text)``: renders markdown for the page being built;
- ``t(key, **args)``: localized string lookup.

Key classes:
- Capabilities: The per-call hooks.
- TemplateEngine: Compiles the bundle at startup and renders pages.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateNotFound,
    TemplateSyntaxError,
    select_autoescape,
)
from markupsafe import Markup

from .errors import FolioError, TemplateError

BUNDLED_TEMPLATES_DIR = Path(__file__).parent / "templates"
BUNDLED_TEMPLATES = (
    "base.jinja",
    "index.jinja",
    "issue.jinja",
    "article.jinja",
    "author.jinja",
    "authors.jinja",
    "404.jinja",
)


@dataclass(frozen=True)
class Capabilities:
    """Callbacks a template may use while rendering one page."""

    markdown: Callable[[str], Markup]
    translate: Callable[..., str]


def _format_date(value: date | None, fmt: str = "%Y-%m-%d") -> str:
    if value is None:
        return ""
    return value.strftime(fmt)


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        project_root: Project root, or None to use only bundled templates.
        env: Jinja2 environment.
    """

    def __init__(self, project_root: Path | None = None):
        self.project_root = project_root
        loaders = []
        if project_root is not None:
            loaders.append(FileSystemLoader(project_root / "templates"))
        loaders.append(FileSystemLoader(BUNDLED_TEMPLATES_DIR))
        self.env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self.env.filters["date"] = _format_date

    @property
    def templates_dir(self) -> Path | None:
        if self.project_root is None:
            return None
        return self.project_root / "templates"

    def compile_all(self, overrides: Iterable[str] = ()) -> list[str]:
        """Compile the bundled templates and the configured overrides.

        Args:
            overrides: Override template names configured by the theme.

        Returns:
            Names of the compiled templates.

        Raises:
            TemplateError: If any template is missing or fails to compile.
        """
        names = list(BUNDLED_TEMPLATES) + [n for n in overrides if n]
        for name in names:
            try:
                self.env.get_template(name)
            except TemplateSyntaxError as exc:
                raise TemplateError(
                    f"Template syntax error on line {exc.lineno}: {exc.message}",
                    Path(exc.filename) if exc.filename else None,
                    exc,
                ) from exc
            except TemplateNotFound as exc:
                raise TemplateError(f"Template not found: {name}", None, exc) from exc
        return names

    def render_page(
        self,
        template_name: str,
        context: dict[str, Any],
        capabilities: Capabilities,
    ) -> str:
        """Render a named template.

        Args:
            template_name: Template to render, e.g. ``article.jinja``.
            context: Page context.
            capabilities: markdown and translate hooks for this page.

        Returns:
            Rendered HTML.

        Raises:
            TemplateError: On missing templates, undefined context fields or
                template runtime errors.
            RenderError: When the markdown hook fails on malformed markup.
        """
        try:
            template = self.env.get_template(template_name)
            return template.render(
                **context,
                markdown=capabilities.markdown,
                t=capabilities.translate,
            )
        except FolioError:
            raise
        except TemplateNotFound as exc:
            raise TemplateError(f"Template not found: {exc.name}", None, exc) from exc
        except TemplateSyntaxError as exc:
            raise TemplateError(
                f"Template syntax error on line {exc.lineno}: {exc.message}",
                Path(exc.filename) if exc.filename else None,
                exc,
            ) from exc
        except Exception as exc:
            raise TemplateError(_format_error_message(exc), None, exc) from exc

