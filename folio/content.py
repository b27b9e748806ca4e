"""Content model for Folio.

This module loads the site's content tree into an immutable model:
a Site holds the menu, theme, authors and an ordered sequence of Issues,
and each Issue holds an ordered sequence of Articles.

Layout on disk:
- folio.yaml: site, theme and authors.
- content/<dir>/issue.yaml: one manifest per issue listing its articles.
- content/<dir>/<article>.md: article body, optionally followed by a ``+++``
  line and a YAML list of end-matter comments.

Key classes:
- Site, Issue, Article, Author, Theme, MenuItem: frozen dataclasses.
- ArticleSource: body and end-matter read from disk at render time.

Key functions:
- load_site: Build a Site from a project root, raising ContentError on bad structure.
- read_article_source: Read an article's body and comments.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from .config import config_path, load_config
from .errors import ContentError, RenderError
from .utils import capitalize, is_valid_slug, parse_date, slugify

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "issue.yaml"
CONTENT_DIRNAME = "content"
END_MATTER_DELIMITER = "+++"
DEFAULT_AVATAR = "/static/avatar.png"

# Top-level output names an issue slug must not shadow.
RESERVED_SLUGS = frozenset({"static", "authors", "feed", "sitemap"})


@dataclass(frozen=True)
class MenuItem:
    name: str
    url: str


@dataclass(frozen=True)
class Theme:
    """Theme settings: colour tokens and optional override templates.

    Override templates are paths relative to the project's templates/ directory.
    """

    primary_color: str = "#2563eb"
    main_color: str = "#ffffff"
    link_color: str = "#2563eb"
    secondary_color: str = "#eff3f7"
    header_template: str | None = None
    footer_template: str | None = None
    article_extend_template: str | None = None

    def override_templates(self) -> dict[str, str]:
        """Return configured override templates keyed by slot name."""
        slots = {
            "header": self.header_template,
            "footer": self.footer_template,
            "article_extend": self.article_extend_template,
        }
        return {slot: name for slot, name in slots.items() if name}


@dataclass(frozen=True)
class Author:
    id: str
    name: str
    avatar: str = DEFAULT_AVATAR
    bio: str = ""
    editor: bool = False

    @property
    def slug(self) -> str:
        return f"@{self.id.lower()}"

    @property
    def url(self) -> str:
        return f"/{self.slug}/"


@dataclass(frozen=True)
class Comment:
    """One end-matter entry rendered after an article body."""

    author: str
    content: str
    bio: str = ""


@dataclass(frozen=True)
class ArticleSource:
    body: str
    comments: tuple[Comment, ...] = ()


@dataclass(frozen=True)
class Article:
    """An article inside an issue.

    Siblings are not stored here; they are derived from the owning Issue's
    declared order through Issue.siblings.
    """

    slug: str
    title: str
    authors: tuple[str, ...]
    pub_date: date
    source: Path
    issue_slug: str
    cover: str | None = None

    @property
    def url(self) -> str:
        return f"/{self.issue_slug}/{self.slug}/"

    @property
    def output_path(self) -> str:
        return f"{self.issue_slug}/{self.slug}/index.html"

    def is_author(self, author_id: str) -> bool:
        return any(a.lower() == author_id.lower() for a in self.authors)


@dataclass(frozen=True)
class Issue:
    slug: str
    title: str
    number: int
    directory: Path
    manifest: Path
    articles: tuple[Article, ...] = ()
    pub_date: date | None = None
    intro: Path | None = None

    @property
    def url(self) -> str:
        return f"/{self.slug}/"

    @property
    def output_path(self) -> str:
        return f"{self.slug}/index.html"

    def siblings(self, article: Article) -> tuple[Article | None, Article | None]:
        """Return the (previous, next) articles around ``article`` in declared order."""
        slugs = [a.slug for a in self.articles]
        index = slugs.index(article.slug)
        previous = self.articles[index - 1] if index > 0 else None
        following = self.articles[index + 1] if index + 1 < len(self.articles) else None
        return previous, following

    def asset_files(self) -> list[Path]:
        """Non-markdown files in the issue directory, published next to the issue page."""
        files = []
        for path in sorted(self.directory.rglob("*")):
            if not path.is_file() or path.name == MANIFEST_FILENAME:
                continue
            if path.suffix.lower() == ".md" or path.name.startswith("."):
                continue
            files.append(path)
        return files


@dataclass(frozen=True)
class Site:
    """Root aggregate of the content model.

    Attributes:
        root: Project root directory.
        name: Site name.
        url: Public base URL, may be empty.
        description: Short site description.
        locale: Locale code for translated strings.
        menu: Menu entries.
        theme: Theme settings.
        authors: Declared and implicitly referenced authors.
        issues: Issues ordered by number then directory name.
    """

    root: Path
    name: str
    url: str = ""
    description: str = ""
    locale: str = "en"
    menu: tuple[MenuItem, ...] = ()
    theme: Theme = field(default_factory=Theme)
    authors: tuple[Author, ...] = ()
    issues: tuple[Issue, ...] = ()

    @property
    def config_file(self) -> Path:
        return config_path(self.root)

    def iter_articles(self) -> Iterator[tuple[Issue, Article]]:
        for issue in self.issues:
            for article in issue.articles:
                yield issue, article

    def author(self, author_id: str) -> Author | None:
        for author in self.authors:
            if author.id.lower() == author_id.lower():
                return author
        return None

    def articles_by(self, author_id: str) -> list[Article]:
        return [a for _, a in self.iter_articles() if a.is_author(author_id)]

    def manifests(self) -> list[Path]:
        return [issue.manifest for issue in self.issues]


def read_article_source(article: Article) -> ArticleSource:
    """Read an article's body and end-matter from disk.

    Args:
        article: Article to read.

    Returns:
        ArticleSource with the markdown body and parsed comments.

    Raises:
        ContentError: If the file cannot be read.
        RenderError: If the end-matter is not a YAML list of comments.
    """
    try:
        text = article.source.read_text(encoding="utf-8")
    except OSError as exc:
        raise ContentError(f"Cannot read article: {exc}", article.source, exc) from exc
    return parse_article_text(text, article.source)


def parse_article_text(text: str, source: Path) -> ArticleSource:
    """Split article text into body and end-matter comments."""
    lines = text.splitlines()
    for index, line in enumerate(lines):
        if line.strip() == END_MATTER_DELIMITER:
            body = "\n".join(lines[:index]).rstrip() + "\n"
            end_matter = "\n".join(lines[index + 1 :])
            return ArticleSource(body=body, comments=_parse_comments(end_matter, source))
    return ArticleSource(body=text)


def _parse_comments(text: str, source: Path) -> tuple[Comment, ...]:
    if not text.strip():
        return ()
    try:
        entries = yaml.safe_load(text)
    except (yaml.YAMLError, ValueError) as exc:
        raise RenderError(f"Malformed end-matter: {exc}", source, exc) from exc
    if not isinstance(entries, list):
        raise RenderError("End-matter must be a list of comments", source)
    comments = []
    for entry in entries:
        if not isinstance(entry, dict) or "author" not in entry or "content" not in entry:
            raise RenderError(
                "Each end-matter comment needs 'author' and 'content'", source
            )
        comments.append(
            Comment(
                author=str(entry["author"]),
                content=str(entry["content"]),
                bio=str(entry.get("bio") or ""),
            )
        )
    return tuple(comments)


def load_site(root_path: Path, config: dict[str, Any] | None = None) -> Site:
    """Load the whole content tree into a Site.

    Args:
        root_path: Project root directory.
        config: Already loaded configuration; read from folio.yaml when omitted.

    Returns:
        Immutable Site.

    Raises:
        ContentError: On duplicate slugs, missing required fields,
            unreadable files or malformed manifests.
    """
    if config is None:
        config = load_config(root_path)
    config_file = config_path(root_path)
    site_cfg = _section(config, "site", config_file)
    theme = _load_theme(_section(config, "theme", config_file))
    declared = _load_authors(_section(config, "authors", config_file), config_file)

    content_dir = root_path / CONTENT_DIRNAME
    if not content_dir.is_dir():
        raise ContentError("Missing content directory", content_dir)

    issues: list[Issue] = []
    seen: dict[str, Path] = {}
    for directory in sorted(p for p in content_dir.iterdir() if p.is_dir()):
        manifest = directory / MANIFEST_FILENAME
        if not manifest.exists():
            logger.debug("Skipping %s: no %s", directory, MANIFEST_FILENAME)
            continue
        issue = _load_issue(directory, manifest)
        if issue.slug in seen:
            raise ContentError(
                f"Duplicate issue slug '{issue.slug}' (also used by {seen[issue.slug]})",
                manifest,
            )
        seen[issue.slug] = manifest
        issues.append(issue)
    issues.sort(key=lambda i: (i.number, i.directory.name))

    authors = dict(declared)
    for issue in issues:
        for article in issue.articles:
            for author_id in article.authors:
                if author_id.lower() not in authors:
                    authors[author_id.lower()] = Author(
                        id=author_id, name=capitalize(author_id)
                    )

    menu_items = site_cfg.get("menu") or []
    if not isinstance(menu_items, list):
        raise ContentError("'site.menu' must be a list", config_file)
    menu = tuple(
        MenuItem(name=str(item.get("name", "")), url=str(item.get("url", "")))
        for item in menu_items
        if isinstance(item, dict)
    )
    return Site(
        root=root_path,
        name=str(site_cfg.get("name") or "Folio"),
        url=str(site_cfg.get("url") or "").rstrip("/"),
        description=str(site_cfg.get("description") or ""),
        locale=str(site_cfg.get("locale") or "en"),
        menu=menu,
        theme=theme,
        authors=tuple(authors.values()),
        issues=tuple(issues),
    )


def _section(config: dict[str, Any], key: str, path: Path) -> dict[str, Any]:
    value = config.get(key) or {}
    if not isinstance(value, dict):
        raise ContentError(f"'{key}' must be a mapping", path)
    return value


def _load_theme(data: dict[str, Any]) -> Theme:
    defaults = Theme()
    return Theme(
        primary_color=str(data.get("primary_color") or defaults.primary_color),
        main_color=str(data.get("main_color") or defaults.main_color),
        link_color=str(data.get("link_color") or defaults.link_color),
        secondary_color=str(data.get("secondary_color") or defaults.secondary_color),
        header_template=data.get("header_template"),
        footer_template=data.get("footer_template"),
        article_extend_template=data.get("article_extend_template"),
    )


def _load_authors(data: dict[str, Any], path: Path) -> dict[str, Author]:
    authors: dict[str, Author] = {}
    for author_id, entry in data.items():
        entry = entry or {}
        if not isinstance(entry, dict):
            raise ContentError(f"Author '{author_id}' must be a mapping", path)
        author_id = str(author_id)
        authors[author_id.lower()] = Author(
            id=author_id,
            name=str(entry.get("name") or capitalize(author_id)),
            avatar=str(entry.get("avatar") or DEFAULT_AVATAR),
            bio=str(entry.get("bio") or ""),
            editor=bool(entry.get("editor", False)),
        )
    return authors


def _load_issue(directory: Path, manifest: Path) -> Issue:
    try:
        data = yaml.safe_load(manifest.read_text(encoding="utf-8")) or {}
    except (yaml.YAMLError, ValueError) as exc:
        raise ContentError(f"Invalid YAML: {exc}", manifest, exc) from exc
    except OSError as exc:
        raise ContentError(f"Cannot read manifest: {exc}", manifest, exc) from exc
    if not isinstance(data, dict):
        raise ContentError("Issue manifest must be a mapping", manifest)

    title = data.get("title")
    if not title:
        raise ContentError("Issue is missing 'title'", manifest)
    slug = str(data.get("slug") or slugify(directory.name))
    if not is_valid_slug(slug) or slug.lower() in RESERVED_SLUGS:
        raise ContentError(f"Invalid issue slug '{slug}'", manifest)
    try:
        number = int(data.get("number", 0))
        pub_date = parse_date(data.get("pub_date"))
    except (TypeError, ValueError) as exc:
        raise ContentError(f"Invalid issue field: {exc}", manifest, exc) from exc

    intro = None
    if data.get("intro"):
        intro = directory / str(data["intro"])
        if not intro.is_file():
            raise ContentError(f"Intro file not found: {data['intro']}", manifest)

    entries = data.get("articles") or []
    if not isinstance(entries, list):
        raise ContentError("'articles' must be a list", manifest)
    articles: list[Article] = []
    for entry in entries:
        article = _load_article(entry, directory, manifest, slug)
        if any(a.slug == article.slug for a in articles):
            raise ContentError(
                f"Duplicate article slug '{article.slug}' in issue '{slug}'", manifest
            )
        articles.append(article)

    if pub_date is None and articles:
        pub_date = max(a.pub_date for a in articles)
    return Issue(
        slug=slug,
        title=str(title),
        number=number,
        directory=directory,
        manifest=manifest,
        articles=tuple(articles),
        pub_date=pub_date,
        intro=intro,
    )


def _load_article(entry: Any, directory: Path, manifest: Path, issue_slug: str) -> Article:
    if not isinstance(entry, dict):
        raise ContentError("Each article entry must be a mapping", manifest)
    filename = entry.get("file")
    if not filename:
        raise ContentError("Article is missing 'file'", manifest)
    source = directory / str(filename)
    if not source.is_file():
        raise ContentError(f"Article file not found: {filename}", manifest)
    title = entry.get("title")
    if not title:
        raise ContentError(f"Article '{filename}' is missing 'title'", manifest)
    slug = str(entry.get("slug") or slugify(source.stem))
    if not is_valid_slug(slug):
        raise ContentError(f"Invalid article slug '{slug}'", manifest)
    try:
        pub_date = parse_date(entry.get("pub_date"))
    except (TypeError, ValueError) as exc:
        raise ContentError(f"Invalid pub_date for '{filename}': {exc}", manifest, exc) from exc
    if pub_date is None:
        raise ContentError(f"Article '{filename}' is missing 'pub_date'", manifest)
    return Article(
        slug=slug,
        title=str(title),
        authors=_author_ids(entry.get("author"), manifest),
        pub_date=pub_date,
        source=source,
        issue_slug=issue_slug,
        cover=str(entry["cover"]) if entry.get("cover") else None,
    )


def _author_ids(value: Any, manifest: Path) -> tuple[str, ...]:
    """Normalise a single author or a co-author list, dropping duplicates."""
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list) or not all(isinstance(i, str) for i in value):
        raise ContentError("'author' must be a name or a list of names", manifest)
    ids: list[str] = []
    for item in value:
        if item not in ids:
            ids.append(item)
    return tuple(ids)
