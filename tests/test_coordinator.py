import os

import pytest

from folio.build import create_graph
from folio.config import load_config
from folio.coordinator import Coordinator, serve_site
from folio.errors import ContentError
from folio.server import DevServer


class RecordingServer(DevServer):
    def __init__(self):
        super().__init__(http_port=5055)
        self.published = []

    def publish(self, snapshot):
        changed = super().publish(snapshot)
        self.published.append(changed)
        return changed


def _coordinator(project, output_dir=None):
    graph = create_graph(project, load_config(project))
    server = RecordingServer()
    server.publish(graph.full_build().snapshot)
    server.published.clear()
    return Coordinator(graph, server, output_dir), server


def _edit(path, text):
    path.write_text(text, encoding="utf-8")
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 10_000_000))


def test_batch_is_built_and_published(project):
    coordinator, server = _coordinator(project)
    article = project / "content" / "issue-1" / "a.md"
    _edit(article, "# Alpha\n\nUpdated.\n")
    report = coordinator.process(frozenset({article}))
    assert report.ok
    assert server.published == [True]
    assert b"Updated." in server.get("/issue-1/a/")[0]


def test_one_pass_per_batch(project):
    coordinator, server = _coordinator(project)
    calls = []
    original = coordinator.graph.build

    def counting_build(paths):
        calls.append(list(paths))
        return original(paths)

    coordinator.graph.build = counting_build
    issue = project / "content" / "issue-1"
    batch = frozenset(issue / name for name in ("a.md", "b.md", "c.md"))
    coordinator.run([batch])
    assert len(calls) == 1
    assert sorted(calls[0]) == sorted(batch)


def test_unchanged_output_does_not_reload(project):
    coordinator, server = _coordinator(project)
    report = coordinator.process(frozenset({project / "content" / "issue-1" / "ghost.md"}))
    assert report.built == []
    assert server.published == [False]


def test_failed_reload_keeps_served_site(project):
    coordinator, server = _coordinator(project)
    before = server.snapshot
    manifest = project / "content" / "issue-1" / "issue.yaml"
    manifest.write_text("title: [broken", encoding="utf-8")
    report = coordinator.process(frozenset({manifest}))
    assert report.error is not None
    assert server.published == []
    assert server.snapshot is before


def test_published_snapshot_is_written(project, tmp_path):
    out = tmp_path / "out"
    coordinator, server = _coordinator(project, output_dir=out)
    css = project / "static" / "style.css"
    _edit(css, "body { color: green; }\n")
    coordinator.process(frozenset({css}))
    assert (out / "static" / "style.css").read_text(encoding="utf-8") == "body { color: green; }\n"
    assert (out / "index.html").exists()


def test_serve_site_wires_components(project, monkeypatch):
    events = {}

    class DummyServer:
        def __init__(self, http_port=4000, ws_port=None, host="localhost"):
            events["ports"] = (http_port, ws_port)
            self.snapshot = None

        def publish(self, snapshot):
            self.snapshot = snapshot
            return True

        def start(self):
            events["started"] = True

        def stop(self):
            events["stopped"] = True

    class DummyWatcher:
        def __init__(self, root, ignore=(), debounce=0.2):
            events["ignore"] = [p.name for p in ignore]
            events["debounce"] = debounce

        def start(self):
            events["built_before_watch"] = (project / "build" / "index.html").exists()

        def stop(self):
            events["watch_stopped"] = True

        def __iter__(self):
            raise KeyboardInterrupt

    monkeypatch.setattr("folio.coordinator.DevServer", DummyServer)
    monkeypatch.setattr("folio.coordinator.Watcher", DummyWatcher)
    serve_site(project, http_port=5050)
    assert events["ports"] == (5050, 5051)
    assert events["started"] and events["stopped"]
    assert events["built_before_watch"] is False
    assert events["watch_stopped"]
    assert events["ignore"] == ["build", "build.staging", "build.old"]
    assert events["debounce"] == 0.2
    assert (project / "build" / "index.html").exists()


def test_serve_site_stops_watcher_when_first_build_fails(project, monkeypatch):
    events = {}

    class DummyWatcher:
        def __init__(self, root, ignore=(), debounce=0.2):
            pass

        def start(self):
            events["watching"] = True

        def stop(self):
            events["watching"] = False

    monkeypatch.setattr("folio.coordinator.Watcher", DummyWatcher)
    (project / "content" / "issue-2" / "issue.yaml").write_text("title: [broken", encoding="utf-8")
    with pytest.raises(ContentError):
        serve_site(project, http_port=5050)
    assert events["watching"] is False
