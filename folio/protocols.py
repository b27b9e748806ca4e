"""Protocol definitions for Folio.

Narrow interfaces the build core consumes from its collaborators. Rendering
code depends on these rather than on concrete classes, so tests can pass
small fakes.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .content import Author


@runtime_checkable
class MacroResolver(Protocol):
    """Resolves custom markup references (``@author``) found in markdown."""

    @abstractmethod
    def author(self, author_id: str) -> Author | None:
        """Return the author with this id, or None when unknown."""
        ...


@runtime_checkable
class Localizer(Protocol):
    """Localized string lookup used from inside templates."""

    @abstractmethod
    def translate(self, key: str, **args: Any) -> str:
        """Return the translation of ``key`` formatted with ``args``."""
        ...

