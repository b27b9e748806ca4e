"""Build graph for Folio.

Tracks one node per output artifact. Each node keeps the artifact's
dependency set, the bytes of its last successful render and the
modification stamps of its dependencies at that render. A build pass takes a
set of changed paths, marks the affected nodes dirty, renders them on a
thread pool and assembles a new Snapshot from every node holding bytes.

Changes to the site structure (config, manifests, translations, files
appearing or disappearing) reload the Site and re-plan every node. Nodes
whose output path, dependency set and dependency stamps are unchanged keep
their cached bytes without re-rendering.

Key classes:
- NodeState: Node lifecycle states.
- Node: One artifact with its cache.
- BuildReport: Outcome of one build pass.
- BuildGraph: Owns the nodes and runs build passes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .artifacts import ArtifactSpec, plan_artifacts
from .config import config_path, load_config
from .content import MANIFEST_FILENAME, load_site
from .errors import FolioError
from .i18n import Translator
from .snapshot import Snapshot
from .templates import TemplateEngine

logger = logging.getLogger(__name__)

Stamp = tuple[int, int] | None


class NodeState(Enum):
    FRESH = "fresh"
    DIRTY = "dirty"
    RENDERING = "rendering"
    FAILED = "failed"


def stamp_paths(paths: Iterable[Path]) -> dict[Path, Stamp]:
    """Return (mtime_ns, size) for each path, or None when it does not exist."""
    stamps: dict[Path, Stamp] = {}
    for path in paths:
        try:
            stat = path.stat()
        except OSError:
            stamps[path] = None
        else:
            stamps[path] = (stat.st_mtime_ns, stat.st_size)
    return stamps


@dataclass
class Node:
    """One artifact tracked by the graph.

    ``output`` holds the bytes of the last successful render and survives
    failed renders, so a failing artifact keeps serving its last-good bytes.
    """

    spec: ArtifactSpec
    state: NodeState = NodeState.DIRTY
    output: bytes | None = None
    stamps: dict[Path, Stamp] = field(default_factory=dict)
    error: str | None = None

    @property
    def path(self) -> str:
        return self.spec.path

    @property
    def dependencies(self) -> frozenset[Path]:
        return self.spec.dependencies

    def mark_dirty(self) -> None:
        if self.state in (NodeState.FRESH, NodeState.FAILED):
            self.state = NodeState.DIRTY

    def render(self) -> None:
        """Render this node. Only called from the node's own worker."""
        stamps = stamp_paths(self.dependencies)
        try:
            output = self.spec.render()
        except FolioError as exc:
            self.state = NodeState.FAILED
            self.error = str(exc)
            logger.error("Failed to render %s: %s", self.path, exc)
            return
        self.output = output
        self.stamps = stamps
        self.state = NodeState.FRESH
        self.error = None


@dataclass
class BuildReport:
    """Outcome of a build pass.

    Attributes:
        built: Paths rendered successfully in this pass.
        reused: Paths served from cache.
        failed: Failing paths mapped to their error messages.
        snapshot: Snapshot assembled after the pass.
        error: Set when a structural reload failed and the previous graph was kept.
    """

    built: list[str]
    reused: list[str]
    failed: dict[str, str]
    snapshot: Snapshot
    error: str | None = None

    @property
    def ok(self) -> bool:
        return not self.failed and self.error is None

    def summary(self) -> str:
        parts = [f"{len(self.built)} built", f"{len(self.reused)} reused"]
        if self.failed:
            parts.append(f"{len(self.failed)} failed")
        text = ", ".join(parts)
        if self.error:
            text += f" (reload failed: {self.error})"
        return text


class BuildGraph:
    """Owns the artifact nodes of one project and runs build passes.

    Build passes are not thread-safe; a single coordinator calls them.

    Attributes:
        project_root: Project root directory.
        engine: Template engine shared by every pass.
        workers: Size of the render thread pool.
        snapshot: Snapshot produced by the last completed pass.
    """

    def __init__(self, project_root: Path, engine: TemplateEngine, workers: int = 4):
        self.project_root = project_root.resolve()
        self.engine = engine
        self.workers = max(1, int(workers))
        self.snapshot = Snapshot()
        self.site = None
        self._nodes: dict[str, Node] = {}

    @property
    def nodes(self) -> list[Node]:
        return list(self._nodes.values())

    def node(self, path: str) -> Node:
        return self._nodes[path]

    def full_build(self) -> BuildReport:
        """Load the site, plan every artifact and render them all.

        Raises:
            ContentError: On malformed content.
            TemplateError: If a template fails to compile.
        """
        specs = self._plan()
        self._nodes = {spec.path: Node(spec) for spec in specs}
        return self._render_pass()

    def build(self, dirty_paths: Iterable[Path]) -> BuildReport:
        """Run one build pass for a batch of changed paths.

        Args:
            dirty_paths: Source paths reported as changed.

        Returns:
            BuildReport for the pass. When a structural reload fails the
            previous nodes and snapshot are kept and ``error`` is set.
        """
        dirty = frozenset(Path(p).resolve() for p in dirty_paths)
        if self._is_structural(dirty):
            logger.debug("Structural change; reloading site")
            try:
                specs = self._plan()
            except FolioError as exc:
                logger.error("Reload failed: %s", exc)
                return self._report([], error=str(exc))
            self._replan(specs)
        else:
            for node in self._nodes.values():
                if node.dependencies & dirty:
                    node.mark_dirty()
        return self._render_pass()

    def retry_failed(self) -> BuildReport:
        """Move every failed node back to dirty and run a build pass."""
        for node in self._nodes.values():
            if node.state is NodeState.FAILED:
                node.mark_dirty()
        return self._render_pass()

    def _plan(self) -> list[ArtifactSpec]:
        config = load_config(self.project_root)
        site = load_site(self.project_root, config)
        self.engine.compile_all(site.theme.override_templates().values())
        translator = Translator(site.locale, self.project_root)
        specs = plan_artifacts(site, self.engine, translator)
        self.site = site
        return specs

    def _replan(self, specs: list[ArtifactSpec]) -> None:
        nodes: dict[str, Node] = {}
        for spec in specs:
            old = self._nodes.get(spec.path)
            node = Node(spec)
            if old is not None:
                node.output = old.output
                if (
                    old.state is NodeState.FRESH
                    and old.dependencies == spec.dependencies
                    and old.stamps == stamp_paths(spec.dependencies)
                ):
                    node.state = NodeState.FRESH
                    node.stamps = old.stamps
            nodes[spec.path] = node
        removed = set(self._nodes) - set(nodes)
        if removed:
            logger.debug("Dropped artifacts: %s", ", ".join(sorted(removed)))
        self._nodes = nodes

    def _is_structural(self, dirty: frozenset[Path]) -> bool:
        known: set[Path] = set()
        for node in self._nodes.values():
            known.update(node.dependencies)
        known_dirs = {parent for path in known for parent in path.parents}
        config_file = config_path(self.project_root)
        locales_dir = self.project_root / "locales"
        for path in dirty:
            if path == config_file or path.name == MANIFEST_FILENAME:
                return True
            if locales_dir in path.parents or path.is_dir() or path in known_dirs:
                return True
            if path.is_file() != (path in known):
                return True
        return False

    def _render_pass(self) -> BuildReport:
        pending = [n for n in self._nodes.values() if n.state is NodeState.DIRTY]
        for node in pending:
            node.state = NodeState.RENDERING
        if pending:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                for future in [pool.submit(node.render) for node in pending]:
                    future.result()
        built = [n.path for n in pending if n.state is NodeState.FRESH]
        self.snapshot = Snapshot(
            {n.path: n.output for n in self._nodes.values() if n.output is not None}
        )
        return self._report(built)

    def _report(self, built: list[str], error: str | None = None) -> BuildReport:
        rendered = set(built)
        return BuildReport(
            built=sorted(built),
            reused=sorted(
                n.path
                for n in self._nodes.values()
                if n.state is NodeState.FRESH and n.path not in rendered
            ),
            failed={
                n.path: n.error or ""
                for n in sorted(self._nodes.values(), key=lambda n: n.path)
                if n.state is NodeState.FAILED
            },
            snapshot=self.snapshot,
            error=error,
        )
