"""Watch-mode build coordination for Folio.

The Coordinator is the only caller of the build graph in serve mode and the
only writer of the published snapshot. It consumes change batches from the
watcher one at a time; changes arriving during a pass wait in the watcher's
queue and form the next batch.

Key classes:
- Coordinator: Batch consumer loop.

Key functions:
- serve_site: Full build, then serve and rebuild on change until interrupted.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from .build import create_graph, resolve_output_dir
from .config import load_config
from .graph import BuildGraph, BuildReport
from .server import DevServer
from .snapshot import staging_dir_for, trash_dir_for, write_snapshot
from .watcher import Watcher

logger = logging.getLogger(__name__)


class Coordinator:
    """Runs one build pass per change batch and publishes the result.

    Attributes:
        graph: Build graph to drive.
        server: Dev server receiving snapshots.
        output_dir: When set, each published snapshot is also written here.
    """

    def __init__(self, graph: BuildGraph, server: DevServer, output_dir: Path | None = None):
        self.graph = graph
        self.server = server
        self.output_dir = output_dir

    def process(self, batch: Iterable[Path]) -> BuildReport:
        """Run a build pass for one batch and publish its snapshot."""
        paths = sorted(batch)
        logger.info("Change detected: %s", ", ".join(_display(p, self.graph.project_root) for p in paths))
        report = self.graph.build(paths)
        if report.error is not None:
            logger.error("Keeping previous site: %s", report.error)
            return report
        for path, reason in report.failed.items():
            logger.error("  %s: %s", path, reason)
        if self.server.publish(report.snapshot) and self.output_dir is not None:
            write_snapshot(report.snapshot, self.output_dir)
        logger.info("Rebuilt: %s", report.summary())
        return report

    def run(self, batches: Iterable[frozenset[Path]]) -> None:
        """Process batches until the source is exhausted or raises."""
        for batch in batches:
            self.process(batch)


def _display(path: Path, root: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


def serve_site(
    project_root: Path,
    http_port: int | None = None,
    ws_port: int | None = None,
    workers: int | None = None,
) -> None:
    """Build the site, serve it and rebuild on change until interrupted.

    Raises:
        ContentError: If the initial load fails.
        TemplateError: If a template fails to compile.
        ServeError: If the HTTP port cannot be bound.
        WatchError: If the watch root disappears.
    """
    config = load_config(project_root)
    output_dir = resolve_output_dir(project_root, config)
    graph = create_graph(project_root, config, workers)

    # Edits saved during the first build form the first batch.
    watcher = Watcher(
        project_root,
        ignore=[output_dir, staging_dir_for(output_dir), trash_dir_for(output_dir)],
        debounce=float(config.get("debounce", 0.2)),
    )
    watcher.start()
    server = None
    try:
        report = graph.full_build()
        logger.info("Built: %s", report.summary())
        for path, reason in report.failed.items():
            logger.error("  %s: %s", path, reason)
        write_snapshot(report.snapshot, output_dir)

        port = int(http_port or config.get("port", 4000))
        if ws_port is None:
            ws_port = port + 1 if http_port is not None else config.get("ws_port", port + 1)
        server = DevServer(http_port=port, ws_port=ws_port)
        server.publish(report.snapshot)
        server.start()
        Coordinator(graph, server, output_dir).run(watcher)
    except KeyboardInterrupt:
        logger.info("Stopping")
    finally:
        watcher.stop()
        if server is not None:
            server.stop()
