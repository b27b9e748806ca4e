from folio.content import load_site
from folio.feeds import (
    AtomGenerator,
    FeedRegistry,
    SitemapGenerator,
    create_default_feed_registry,
)


def test_atom_feed_lists_newest_first(project):
    site = load_site(project)
    feed = AtomGenerator().generate(site)
    assert feed.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "<title>Test Magazine</title>" in feed
    assert "<updated>2024-02-01T00:00:00Z</updated>" in feed
    titles = [line.strip() for line in feed.splitlines() if line.strip().startswith("<title>")]
    assert titles == [
        "<title>Test Magazine</title>",
        "<title>Article D</title>",
        "<title>Article C</title>",
        "<title>Article B</title>",
        "<title>Article A</title>",
    ]
    assert '<link href="https://mag.example.com/issue-1/b/"/>' in feed
    assert "<author><name>Alice Liddell</name></author>" in feed
    assert "<summary>The first article.</summary>" in feed


def test_atom_feed_is_deterministic(project):
    site = load_site(project)
    assert AtomGenerator().generate(site) == AtomGenerator().generate(site)


def test_atom_feed_escapes_titles(project):
    manifest = project / "content" / "issue-2" / "issue.yaml"
    manifest.write_text(
        manifest.read_text(encoding="utf-8").replace("Article D", "'Cats & <Dogs>'"),
        encoding="utf-8",
    )
    feed = AtomGenerator().generate(load_site(project))
    assert "<title>Cats &amp; &lt;Dogs&gt;</title>" in feed


def test_sitemap_requires_url(project):
    site = load_site(project)
    generator = SitemapGenerator()
    assert generator.applies_to(site)
    sitemap = generator.generate(site)
    assert "<loc>https://mag.example.com/</loc>" in sitemap
    assert (
        "<url><loc>https://mag.example.com/issue-1/a/</loc><lastmod>2024-01-01</lastmod></url>"
        in sitemap
    )

    config = project / "folio.yaml"
    config.write_text(
        config.read_text(encoding="utf-8").replace("  url: https://mag.example.com\n", ""),
        encoding="utf-8",
    )
    site = load_site(project)
    assert not generator.applies_to(site)
    assert generator.generate(site) is None


def test_registry_filters_by_site(project):
    registry = create_default_feed_registry()
    site = load_site(project)
    assert [g.filename for g in registry.for_site(site)] == ["feed.xml", "sitemap.xml"]

    empty = FeedRegistry()
    assert list(empty) == []
    assert empty.for_site(site) == []
