"""Configuration loading for Folio.

Reads folio.yaml from the project root and applies defaults. The rest of
the package treats the returned dict as an already-validated data source.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .errors import ContentError

CONFIG_FILENAME = "folio.yaml"

DEFAULT_CONFIG = {
    "output_dir": "build",
    "port": 4000,
    "workers": 4,
    "debounce": 0.2,
}


def config_path(project_root: Path) -> Path:
    """Return the path of the project's configuration file."""
    return project_root / CONFIG_FILENAME


def find_project_root(start: Path) -> Path:
    """Return the nearest directory at or above ``start`` holding folio.yaml.

    Falls back to ``start`` when no ancestor has one.
    """
    start = start.resolve()
    for candidate in (start, *start.parents):
        if config_path(candidate).is_file():
            return candidate
    return start


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from folio.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ContentError: If the file is not valid YAML or is not a mapping.
    """
    path = config_path(project_root)
    config = DEFAULT_CONFIG.copy()
    if not path.exists():
        return config
    try:
        with open(path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except (yaml.YAMLError, ValueError) as exc:
        raise ContentError(f"Invalid YAML: {exc}", path, exc) from exc
    except OSError as exc:
        raise ContentError(f"Cannot read config: {exc}", path, exc) from exc
    if not isinstance(loaded, dict):
        raise ContentError("Config must be a mapping", path)
    config.update(loaded)
    return config
