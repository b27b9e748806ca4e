"""Immutable build snapshots.

A Snapshot maps output paths to bytes. It is never mutated after
construction; the build graph hands the dev server a new Snapshot after each
pass and the server swaps a single reference, so readers see either the old
or the new set of files.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

from .utils import hash_bytes

logger = logging.getLogger(__name__)


class Snapshot(Mapping[str, bytes]):
    """Read-only mapping of output path to content, with a content digest."""

    def __init__(self, files: Mapping[str, bytes] | None = None):
        self._files = MappingProxyType(dict(files or {}))
        digest = hashlib.sha256()
        for path in sorted(self._files):
            digest.update(path.encode("utf-8"))
            digest.update(b"\0")
            digest.update(hash_bytes(self._files[path]).encode("ascii"))
        self.digest = digest.hexdigest()

    def __getitem__(self, path: str) -> bytes:
        return self._files[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __repr__(self) -> str:
        return f"Snapshot({len(self)} files, digest={self.digest[:12]})"


def staging_dir_for(output_dir: Path) -> Path:
    return output_dir.with_name(output_dir.name + ".staging")


def trash_dir_for(output_dir: Path) -> Path:
    return output_dir.with_name(output_dir.name + ".old")


def write_snapshot(snapshot: Snapshot, output_dir: Path) -> Path:
    """Write a snapshot to disk, replacing ``output_dir`` in one rename.

    Files are written to a sibling staging directory first; the previous
    output is moved aside and removed only after the staging directory is
    in place.

    Args:
        snapshot: Files to write.
        output_dir: Destination directory.

    Returns:
        The output directory.
    """
    staging = staging_dir_for(output_dir)
    trash = trash_dir_for(output_dir)
    if staging.exists():
        shutil.rmtree(staging)
    staging.mkdir(parents=True)
    for rel_path, content in snapshot.items():
        target = staging / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    if trash.exists():
        shutil.rmtree(trash)
    if output_dir.exists():
        os.replace(output_dir, trash)
    os.replace(staging, output_dir)
    if trash.exists():
        shutil.rmtree(trash)
    logger.debug("Wrote %d files to %s", len(snapshot), output_dir)
    return output_dir
