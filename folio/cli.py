"""Command-line interface for Folio.

This module defines the CLI commands using Click framework.

Commands:
- build: Build the site into the output directory.
- serve: Run development server with live reload.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .config import find_project_root
from .errors import FolioError


_LEVEL_COLORS = {logging.WARNING: "yellow", logging.ERROR: "red", logging.CRITICAL: "red"}


class _EchoHandler(logging.Handler):
    """Logging handler that writes through click.echo to the current stderr."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            color = _LEVEL_COLORS.get(record.levelno)
            click.echo(click.style(message, fg=color) if color else message, err=True)
        except Exception:
            self.handleError(record)


def _setup_logging(verbose: bool) -> None:
    logger = logging.getLogger("folio")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not any(isinstance(h, _EchoHandler) for h in logger.handlers):
        handler = _EchoHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)


def _project_root(source: Path | None) -> Path:
    if source is not None:
        return source
    return find_project_root(Path.cwd())


def _echo_error(title: str, exc: FolioError, project_root: Path) -> None:
    click.echo(click.style(title, fg="red", bold=True), err=True)
    if exc.source_path is not None:
        try:
            rel_path = exc.source_path.resolve().relative_to(project_root.resolve())
        except ValueError:
            rel_path = exc.source_path
        click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


@click.group()
@click.version_option(version=__version__, prog_name="folio")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
def cli(verbose: bool):
    """Folio magazine site compiler."""
    _setup_logging(verbose)


@cli.command()
@click.option(
    "--source",
    type=click.Path(file_okay=False, path_type=Path),
    required=False,
    help="Project root (defaults to the nearest directory with folio.yaml)",
)
@click.option(
    "--dest",
    type=click.Path(file_okay=False, path_type=Path),
    required=False,
    help="Output directory (overrides folio.yaml output_dir)",
)
@click.option("--workers", type=click.IntRange(min=1), required=False, help="Render threads")
def build(source: Path | None, dest: Path | None, workers: int | None):
    """Build the site into the output directory."""
    project_root = _project_root(source)
    from .build import build_site

    try:
        result = build_site(project_root, output_dir_override=dest, workers=workers)
    except FolioError as exc:
        _echo_error("Build failed:", exc, project_root)
        raise SystemExit(1) from None

    report = result.report
    click.echo(f"Built {len(report.snapshot)} files into {result.output_dir}")
    if report.failed:
        click.echo(
            click.style(f"{len(report.failed)} artifacts failed:", fg="red", bold=True),
            err=True,
        )
        for path, reason in report.failed.items():
            click.echo(click.style(f"  {path}: ", fg="yellow") + reason, err=True)
        raise SystemExit(1)


@cli.command()
@click.option(
    "--source",
    type=click.Path(file_okay=False, path_type=Path),
    required=False,
    help="Project root (defaults to the nearest directory with folio.yaml)",
)
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides folio.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides folio.yaml ws_port)",
)
@click.option("--workers", type=click.IntRange(min=1), required=False, help="Render threads")
def serve(source: Path | None, port: int | None, ws_port: int | None, workers: int | None):
    """Run dev server with live reload."""
    project_root = _project_root(source)
    from . import coordinator

    try:
        coordinator.serve_site(project_root, http_port=port, ws_port=ws_port, workers=workers)
    except FolioError as exc:
        _echo_error("Serve failed:", exc, project_root)
        raise SystemExit(1) from None


def main():
    """Entry point for the CLI application."""
    cli()
