"""Artifact planning for Folio.

Turns a Site into the list of output artifacts the build graph tracks.
Each ArtifactSpec names its output path, the exact set of source files its
bytes depend on, and a render callable producing those bytes.

No render callable reads another artifact's output: siblings, issue lists
and author lists all come from the Site model. The build graph can therefore
render every dirty artifact in parallel with a single join.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from markupsafe import Markup

from .content import Article, Issue, Site, read_article_source
from .errors import ContentError
from .feeds import FeedGenerator, FeedRegistry, create_default_feed_registry
from .html_utils import join_root_url
from .markdown import MarkdownRenderer, RenderContext, resolve_url
from .protocols import Localizer
from .templates import Capabilities, TemplateEngine
from .utils import extract_description

STATIC_DIRNAME = "static"


@dataclass(frozen=True)
class ArtifactSpec:
    """One planned unit of build output.

    Attributes:
        path: Output path relative to the site root, e.g. ``issue-1/index.html``.
        kind: ``page``, ``feed`` or ``asset``.
        dependencies: Source files whose content determines the output.
        render: Produces the artifact's bytes.
    """

    path: str
    kind: str
    dependencies: frozenset[Path]
    render: Callable[[], bytes] = field(compare=False, repr=False)


class ArtifactPlanner:
    """Plans every artifact of a Site.

    Attributes:
        engine: Template engine for pages.
        translator: Localized string lookup handed to templates.
        markdown: Markdown renderer handed to templates.
        feeds: Feed generators planned as artifacts.
    """

    def __init__(
        self,
        engine: TemplateEngine,
        translator: Localizer,
        markdown: MarkdownRenderer | None = None,
        feeds: FeedRegistry | None = None,
    ):
        self.engine = engine
        self.translator = translator
        self.markdown = markdown or MarkdownRenderer()
        self.feeds = feeds or create_default_feed_registry()

    def plan(self, site: Site) -> list[ArtifactSpec]:
        """Plan all artifacts for ``site``.

        Raises:
            ContentError: If two artifacts would write the same output path.
        """
        page_deps = self._page_dependencies(site)
        specs: list[ArtifactSpec] = [
            self._index_page(site, page_deps),
            self._authors_page(site, page_deps),
            self._not_found_page(site, page_deps),
        ]
        for issue in site.issues:
            specs.append(self._issue_page(site, issue, page_deps))
            for article in issue.articles:
                specs.append(self._article_page(site, issue, article, page_deps))
            for asset in issue.asset_files():
                rel = asset.relative_to(issue.directory).as_posix()
                specs.append(_asset(f"{issue.slug}/{rel}", asset))
        for author in site.authors:
            specs.append(self._author_page(site, author.id, page_deps))
        for generator in self.feeds.for_site(site):
            specs.append(self._feed(site, generator))
        static_dir = site.root / STATIC_DIRNAME
        if static_dir.is_dir():
            for path in sorted(static_dir.rglob("*")):
                if path.is_file():
                    rel = path.relative_to(static_dir).as_posix()
                    specs.append(_asset(f"{STATIC_DIRNAME}/{rel}", path))

        seen: set[str] = set()
        for spec in specs:
            if spec.path in seen:
                raise ContentError(f"Two artifacts write to '{spec.path}'")
            seen.add(spec.path)
        return specs

    def _page_dependencies(self, site: Site) -> frozenset[Path]:
        """Sources every page depends on.

        The author table behind `@author` links is assembled from the config and
        every manifest, so each page depends on all of them, plus project
        templates and translations.
        """
        deps = {site.config_file}
        deps.update(site.manifests())
        templates_dir = self.engine.templates_dir
        if templates_dir is not None and templates_dir.is_dir():
            deps.update(p for p in templates_dir.rglob("*") if p.is_file())
        locale_file = site.root / "locales" / f"{site.locale}.yaml"
        if locale_file.exists():
            deps.add(locale_file)
        return frozenset(deps)

    def _context(
        self,
        site: Site,
        title: str,
        description: str,
        url: str,
        image: str | None = None,
    ) -> dict[str, Any]:
        return {
            "site": site,
            "theme": site.theme,
            "overrides": site.theme.override_templates(),
            "meta": {
                "title": title,
                "description": description or site.description,
                "url": join_root_url(site.url, url),
                "image": image,
            },
        }

    def _render(
        self, template_name: str, context: dict[str, Any], render_context: RenderContext
    ) -> bytes:
        def markdown(text: str) -> Markup:
            return Markup(self.markdown.render(text, render_context))

        capabilities = Capabilities(markdown=markdown, translate=self.translator.translate)
        html = self.engine.render_page(template_name, context, capabilities)
        return html.encode("utf-8")

    def _index_page(self, site: Site, page_deps: frozenset[Path]) -> ArtifactSpec:
        def render() -> bytes:
            context = self._context(site, "", site.description, "/")
            context["issues"] = list(site.issues)
            return self._render("index.jinja", context, RenderContext(macros=site))

        return ArtifactSpec("index.html", "page", page_deps, render)

    def _not_found_page(self, site: Site, page_deps: frozenset[Path]) -> ArtifactSpec:
        def render() -> bytes:
            context = self._context(site, "404", "", "/404.html")
            return self._render("404.jinja", context, RenderContext(macros=site))

        return ArtifactSpec("404.html", "page", page_deps, render)

    def _issue_page(
        self, site: Site, issue: Issue, page_deps: frozenset[Path]
    ) -> ArtifactSpec:
        deps = set(page_deps)
        deps.update(a.source for a in issue.articles)
        if issue.intro is not None:
            deps.add(issue.intro)
        render_context = RenderContext(
            issue_slug=issue.slug,
            links=_article_links(issue),
            macros=site,
            source=issue.intro or issue.manifest,
        )

        def render() -> bytes:
            intro = _read_text(issue.intro) if issue.intro is not None else ""
            entries = [
                {
                    "article": article,
                    "authors": _authors(site, article),
                    "description": extract_description(read_article_source(article).body),
                }
                for article in issue.articles
            ]
            context = self._context(
                site, issue.title, extract_description(intro), issue.url
            )
            context.update(issue=issue, intro=intro, entries=entries)
            return self._render("issue.jinja", context, render_context)

        return ArtifactSpec(issue.output_path, "page", frozenset(deps), render)

    def _article_page(
        self,
        site: Site,
        issue: Issue,
        article: Article,
        page_deps: frozenset[Path],
    ) -> ArtifactSpec:
        render_context = RenderContext(
            issue_slug=issue.slug,
            links=_article_links(issue),
            macros=site,
            source=article.source,
        )

        def render() -> bytes:
            source = read_article_source(article)
            previous, following = issue.siblings(article)
            cover = resolve_url(article.cover, render_context) if article.cover else None
            context = self._context(
                site,
                article.title,
                extract_description(source.body),
                article.url,
                image=join_root_url(site.url, cover) if cover else None,
            )
            context.update(
                issue=issue,
                article=article,
                source=source,
                authors=_authors(site, article),
                previous=previous,
                next=following,
                cover=cover,
            )
            return self._render("article.jinja", context, render_context)

        deps = page_deps | {article.source}
        return ArtifactSpec(article.output_path, "page", deps, render)

    def _author_page(
        self, site: Site, author_id: str, page_deps: frozenset[Path]
    ) -> ArtifactSpec:
        author = site.author(author_id)

        def render() -> bytes:
            context = self._context(
                site, author.name, extract_description(author.bio), author.url
            )
            context.update(author=author, articles=site.articles_by(author.id))
            return self._render("author.jinja", context, RenderContext(macros=site))

        return ArtifactSpec(f"{author.slug}/index.html", "page", page_deps, render)

    def _authors_page(self, site: Site, page_deps: frozenset[Path]) -> ArtifactSpec:
        def render() -> bytes:
            entries = [
                {"author": author, "count": len(site.articles_by(author.id))}
                for author in site.authors
            ]
            context = self._context(
                site, self.translator.translate("author-list"), "", "/authors/"
            )
            context["entries"] = entries
            return self._render("authors.jinja", context, RenderContext(macros=site))

        return ArtifactSpec("authors/index.html", "page", page_deps, render)

    def _feed(self, site: Site, generator: FeedGenerator) -> ArtifactSpec:
        deps = {site.config_file}
        deps.update(site.manifests())
        if generator.uses_article_bodies:
            deps.update(a.source for _, a in site.iter_articles())

        def render() -> bytes:
            return (generator.generate(site) or "").encode("utf-8")

        return ArtifactSpec(generator.filename, "feed", frozenset(deps), render)


def _asset(output_path: str, source: Path) -> ArtifactSpec:
    def render() -> bytes:
        try:
            return source.read_bytes()
        except OSError as exc:
            raise ContentError(f"Cannot read asset: {exc}", source, exc) from exc

    return ArtifactSpec(output_path, "asset", frozenset({source}), render)


def _article_links(issue: Issue) -> dict[str, str]:
    return {article.source.name: article.url for article in issue.articles}


def _authors(site: Site, article: Article) -> list:
    return [a for a in (site.author(i) for i in article.authors) if a is not None]


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ContentError(f"Cannot read file: {exc}", path, exc) from exc


def plan_artifacts(
    site: Site,
    engine: TemplateEngine,
    translator: Localizer,
    markdown: MarkdownRenderer | None = None,
    feeds: FeedRegistry | None = None,
) -> list[ArtifactSpec]:
    """Plan every artifact of ``site`` with a one-off planner."""
    return ArtifactPlanner(engine, translator, markdown, feeds).plan(site)
