"""Markdown rendering for Folio.

Converts article markdown to HTML fragments with mistune. Beyond plain
markdown it supports:
- fenced code blocks with a language tag, highlighted by Pygments with a
  fixed style and inline colours;
- ``callout`` fenced blocks, rendered as nested markdown in a styled div;
- ``quote`` fenced blocks holding a YAML mapping (author, content, bio);
- inline ``@author`` code spans, rendered as links to the author page;
- relative link and image targets rewritten against the current issue.

Rendering is a pure function of (markdown text, RenderContext): every call
builds its own mistune renderer, so workers can render concurrently.

Key classes:
- RenderContext: Per-article inputs for link rewriting and macro lookup.
- MarkdownRenderer: Renders markdown to HTML.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import mistune
import yaml
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .errors import RenderError
from .html_utils import escape_html
from .protocols import MacroResolver

HIGHLIGHT_STYLE = "friendly"

_URL_SKIP_PREFIXES = (
    "http://",
    "https://",
    "//",
    "/",
    "#",
    "mailto:",
    "tel:",
    "data:",
)


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


@dataclass(frozen=True)
class RenderContext:
    """Inputs that make a markdown render depend on where it is published.

    Attributes:
        issue_slug: Slug of the issue owning the text; relative targets
            resolve under ``/<issue_slug>/``.
        links: Source filename to URL for sibling articles, so ``other.md``
            links point at the rendered page.
        macros: Resolver for custom markup (author links).
        source: Source file, used in error messages.
    """

    issue_slug: str | None = None
    links: Mapping[str, str] = field(default_factory=dict)
    macros: MacroResolver | None = None
    source: Path | None = None


def resolve_url(url: str, context: RenderContext) -> str:
    """Rewrite a relative link or image target for the current issue.

    Args:
        url: Target as written in markdown.
        context: Current render context.

    Returns:
        Rewritten URL, or the input unchanged when it is absolute or cannot
        be resolved.
    """
    if not url or url.startswith(_URL_SKIP_PREFIXES) or "{{" in url:
        return url
    path, sep, fragment = url.partition("#")
    if path.endswith(".md"):
        target = context.links.get(Path(path).name)
        if target is None:
            return url
        return f"{target}{sep}{fragment}"
    if context.issue_slug is None:
        return url
    normalized = posixpath.normpath(path)
    if normalized.startswith(".."):
        return url
    return f"/{context.issue_slug}/{normalized}{sep}{fragment}"


class _FolioRenderer(mistune.HTMLRenderer):
    """mistune renderer with highlighting, custom blocks and URL rewriting."""

    def __init__(self, context: RenderContext, markdown: MarkdownRenderer):
        super().__init__(escape=False)
        self.context = context
        self.markdown = markdown
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def image(self, text: str, url: str, title: str | None = None) -> str:
        return super().image(text, resolve_url(url, self.context), title)

    def link(self, text: str, url: str, title: str | None = None) -> str:
        return super().link(text, resolve_url(url, self.context), title)

    def codespan(self, text: str) -> str:
        if text.startswith("@") and self.context.macros is not None:
            author = self.context.macros.author(text[1:])
            if author is not None:
                return (
                    f'<a class="author-link" href="{author.url}">'
                    f"{escape_html(author.name)}</a>"
                )
        return super().codespan(text)

    def block_code(self, code: str, info: str | None = None) -> str:
        parts = (info or "").split()
        lang = parts[0] if parts else ""
        kind, _, variant = lang.partition(":")
        if kind == "callout":
            return self._callout(code, variant or "info")
        if kind == "quote":
            return self._quote(code)
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(
                    style=HIGHLIGHT_STYLE, noclasses=True, cssclass="highlight"
                )
                return highlight(code, lexer, formatter)
        escaped = escape_html(code)
        lang_class = f' class="language-{escape_html(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"

    def _callout(self, code: str, variant: str) -> str:
        inner = self.markdown.render(code, self.context)
        return (
            f'<div class="callout callout-{escape_html(variant)}">\n{inner}</div>\n'
        )

    def _quote(self, code: str) -> str:
        try:
            data = yaml.safe_load(code)
        except (yaml.YAMLError, ValueError) as exc:
            raise RenderError(
                f"Malformed quote block: {exc}", self.context.source, exc
            ) from exc
        if not isinstance(data, dict) or not data.get("content"):
            raise RenderError(
                "Quote block needs a mapping with 'content'", self.context.source
            )
        inner = self.markdown.render(str(data["content"]), self.context)
        cite = ""
        author_id = data.get("author")
        if author_id:
            author = (
                self.context.macros.author(str(author_id))
                if self.context.macros is not None
                else None
            )
            if author is not None:
                cite = f'<cite><a href="{author.url}">{escape_html(author.name)}</a></cite>'
            else:
                cite = f"<cite>{escape_html(str(author_id))}</cite>"
            if data.get("bio"):
                cite += f'<span class="quote-bio">{escape_html(str(data["bio"]))}</span>'
        footer = f"<footer>{cite}</footer>" if cite else ""
        return f'<blockquote class="quote">\n{inner}{footer}</blockquote>\n'


class MarkdownRenderer:
    """Renders Markdown content to HTML fragments.

    Attributes:
        plugins: mistune plugins enabled for every render.
    """

    plugins = ["strikethrough", "footnotes", "table", "url"]

    def render(self, text: str, context: RenderContext | None = None) -> str:
        """Render markdown to an HTML fragment.

        Args:
            text: Markdown source.
            context: Render context; an empty context when omitted.

        Returns:
            HTML fragment.

        Raises:
            RenderError: On malformed custom markup.
        """
        renderer = _FolioRenderer(context or RenderContext(), self)
        markdown = mistune.create_markdown(renderer=renderer, plugins=self.plugins)
        return markdown(text)
