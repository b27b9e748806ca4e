"""Localized string lookup for Folio.

Translations are flat YAML mappings of key to format string. The bundled
English table is always loaded first so every key has a fallback, then the
bundled table for the site locale, then the project's own
``locales/<locale>.yaml`` overrides.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from .errors import ContentError

logger = logging.getLogger(__name__)

BUNDLED_LOCALES_DIR = Path(__file__).parent / "locales"
DEFAULT_LOCALE = "en"


class Translator:
    """Looks up translated strings for one locale.

    Attributes:
        locale: Active locale code.
    """

    def __init__(self, locale: str = DEFAULT_LOCALE, project_root: Path | None = None):
        self.locale = locale
        self._strings: dict[str, str] = {}
        self._strings.update(_read_table(BUNDLED_LOCALES_DIR / f"{DEFAULT_LOCALE}.yaml"))

        found = locale == DEFAULT_LOCALE
        candidates = [BUNDLED_LOCALES_DIR / f"{locale}.yaml"]
        if project_root is not None:
            candidates.append(project_root / "locales" / f"{locale}.yaml")
        for path in candidates:
            if path.exists():
                self._strings.update(_read_table(path))
                found = True
        if not found:
            logger.warning(
                "No translations for locale '%s'; falling back to '%s'",
                locale,
                DEFAULT_LOCALE,
            )

    def translate(self, key: str, **args: Any) -> str:
        """Return the string for ``key`` formatted with ``args``.

        Unknown keys return the key itself so a missing translation is
        visible on the page instead of breaking the build.
        """
        template = self._strings.get(key)
        if template is None:
            logger.debug("Missing translation for '%s' (%s)", key, self.locale)
            return key
        return template.format(**args) if args else template

    def __contains__(self, key: str) -> bool:
        return key in self._strings


def _read_table(path: Path) -> dict[str, str]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (yaml.YAMLError, ValueError) as exc:
        raise ContentError(f"Invalid translation file: {exc}", path, exc) from exc
    if not isinstance(data, dict):
        raise ContentError("Translation file must be a mapping", path)
    return {str(k): str(v) for k, v in data.items()}
