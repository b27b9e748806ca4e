"""One-shot site build for Folio.

Loads the project, renders every artifact through the build graph and
writes the resulting snapshot to the output directory.

Key functions:
- build_site: Main entry point for building a site.
- create_graph: Build graph wired to the project's template engine.
- resolve_output_dir: Output directory from config or an override.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import config_path, load_config
from .errors import ContentError
from .graph import BuildGraph, BuildReport
from .snapshot import write_snapshot
from .templates import TemplateEngine

logger = logging.getLogger(__name__)

SOURCE_DIRNAMES = ("content", "static", "templates", "locales")


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        report: Report of the build pass.
        output_dir: Directory where the site was written.
    """

    report: BuildReport
    output_dir: Path

    @property
    def ok(self) -> bool:
        return self.report.ok


def resolve_output_dir(
    project_root: Path, config: dict[str, Any], override: Path | None = None
) -> Path:
    """Return the output directory from ``override`` or ``config['output_dir']``.

    Raises:
        ContentError: If writing there would overwrite the project or one of
            its source directories.
    """
    if override is not None:
        output_dir = override if override.is_absolute() else project_root / override
    else:
        output_dir = project_root / str(config.get("output_dir") or "build")

    root = project_root.resolve()
    target = output_dir.resolve()
    if root.is_relative_to(target):
        raise ContentError(
            f"Output directory '{output_dir}' would replace the project",
            config_path(project_root),
        )
    for name in SOURCE_DIRNAMES:
        if target.is_relative_to(root / name):
            raise ContentError(
                f"Output directory '{output_dir}' is inside the '{name}' source directory",
                config_path(project_root),
            )
    return output_dir


def create_graph(
    project_root: Path, config: dict[str, Any], workers: int | None = None
) -> BuildGraph:
    """Create a build graph for ``project_root``.

    Args:
        project_root: Project root directory.
        config: Loaded configuration.
        workers: Render pool size; ``config['workers']`` when omitted.
    """
    root = project_root.resolve()
    engine = TemplateEngine(root)
    return BuildGraph(root, engine, workers=workers or int(config.get("workers", 4)))


def build_site(
    project_root: Path,
    output_dir_override: Path | None = None,
    workers: int | None = None,
) -> BuildResult:
    """Build the entire site.

    Args:
        project_root: Root directory of the project.
        output_dir_override: Write output here instead of the configured directory.
        workers: Render pool size override.

    Returns:
        BuildResult. Failed artifacts are listed in ``result.report.failed``;
        the other artifacts are still written.

    Raises:
        ContentError: If the content tree is malformed. Nothing is written.
        TemplateError: If a template fails to compile. Nothing is written.
    """
    config = load_config(project_root)
    output_dir = resolve_output_dir(project_root, config, output_dir_override)
    graph = create_graph(project_root, config, workers)
    report = graph.full_build()
    write_snapshot(report.snapshot, output_dir)
    logger.debug("Build finished: %s", report.summary())
    return BuildResult(report=report, output_dir=output_dir)
