"""Feed generation for Folio.

This module generates the Atom feed and sitemap from the Site model. Feed
content depends only on source content (no wall-clock timestamps), so two
builds of the same tree produce identical bytes.

Classes:
    FeedGenerator: Abstract base for feed generators.
    AtomGenerator: Generates feed.xml.
    SitemapGenerator: Generates sitemap.xml.
    FeedRegistry: Ordered collection of generators planned as build artifacts.

Functions:
    create_default_feed_registry: Create a registry with default generators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from datetime import date
from typing import TYPE_CHECKING

from .content import read_article_source
from .html_utils import escape_html, join_root_url
from .utils import extract_description

if TYPE_CHECKING:
    from .content import Site

EPOCH = date(1970, 1, 1)
FEED_LIMIT = 20


def _atom_date(value: date) -> str:
    return f"{value.isoformat()}T00:00:00Z"


class FeedGenerator(ABC):
    """Abstract base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Return the output filename for this feed."""
        ...

    @abstractmethod
    def generate(self, site: Site) -> str | None:
        """Generate feed content.

        Args:
            site: Site to describe.

        Returns:
            Feed content, or None if the feed cannot be generated for this
            site (e.g., missing required configuration).
        """
        ...

    def applies_to(self, site: Site) -> bool:
        """Return True if this feed is produced for ``site``."""
        return True

    @property
    def uses_article_bodies(self) -> bool:
        """True when the output reads article files, not just manifests."""
        return True


class AtomGenerator(FeedGenerator):
    """Generates an Atom feed of the newest articles across all issues.

    Article descriptions are read from the article files, so the feed
    depends on every article body.
    """

    @property
    def filename(self) -> str:
        return "feed.xml"

    def generate(self, site: Site) -> str | None:
        entries = sorted(
            site.iter_articles(),
            key=lambda pair: (pair[1].pub_date, pair[0].number, pair[1].slug),
            reverse=True,
        )[:FEED_LIMIT]
        updated = max((a.pub_date for _, a in entries), default=EPOCH)
        base = site.url
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<feed xmlns="http://www.w3.org/2005/Atom">',
            f"  <title>{escape_html(site.name)}</title>",
            f'  <link href="{join_root_url(base, "/")}"/>',
            f'  <link rel="self" href="{join_root_url(base, "/feed.xml")}"/>',
            f"  <id>{join_root_url(base, '/')}</id>",
            f"  <updated>{_atom_date(updated)}</updated>",
        ]
        for issue, article in entries:
            link = join_root_url(base, article.url)
            summary = extract_description(read_article_source(article).body)
            lines.append("  <entry>")
            lines.append(f"    <title>{escape_html(article.title)}</title>")
            lines.append(f'    <link href="{link}"/>')
            lines.append(f"    <id>{link}</id>")
            lines.append(f"    <updated>{_atom_date(article.pub_date)}</updated>")
            for author_id in article.authors:
                author = site.author(author_id)
                name = author.name if author else author_id
                lines.append(f"    <author><name>{escape_html(name)}</name></author>")
            lines.append(f"    <category term=\"{escape_html(issue.slug)}\"/>")
            lines.append(f"    <summary>{escape_html(summary)}</summary>")
            lines.append("  </entry>")
        lines.append("</feed>")
        return "\n".join(lines) + "\n"


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml for search engine indexing.

    Requires ``site.url`` to generate absolute URLs.
    """

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def applies_to(self, site: Site) -> bool:
        return bool(site.url)

    @property
    def uses_article_bodies(self) -> bool:
        return False

    def generate(self, site: Site) -> str | None:
        if not site.url:
            return None

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            f"  <url><loc>{join_root_url(site.url, '/')}</loc></url>",
        ]
        for issue in site.issues:
            lastmod = f"<lastmod>{issue.pub_date.isoformat()}</lastmod>" if issue.pub_date else ""
            lines.append(
                f"  <url><loc>{join_root_url(site.url, issue.url)}</loc>{lastmod}</url>"
            )
            for article in issue.articles:
                lines.append(
                    f"  <url><loc>{join_root_url(site.url, article.url)}</loc>"
                    f"<lastmod>{article.pub_date.isoformat()}</lastmod></url>"
                )
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class FeedRegistry:
    """Registry for managing feed generators.

    Attributes:
        _generators: List of registered feed generators.
    """

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def __iter__(self) -> Iterator[FeedGenerator]:
        return iter(self._generators)

    def for_site(self, site: Site) -> list[FeedGenerator]:
        """Generators that produce output for ``site``."""
        return [g for g in self._generators if g.applies_to(site)]


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with default feed generators.

    Returns:
        FeedRegistry configured with Atom and sitemap generators.
    """
    registry = FeedRegistry()
    registry.register(AtomGenerator())
    registry.register(SitemapGenerator())
    return registry
