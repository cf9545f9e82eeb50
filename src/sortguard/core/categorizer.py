"""Extension-based file categorization."""

from pathlib import PurePath
from typing import Protocol

from sortguard.core.constants import CATEGORIES, FALLBACK_CATEGORY
from sortguard.core.schemas import FileEntry


class SubpathResolver(Protocol):
    """Optional collaborator adding a subfolder below the category folder."""

    def subpath_for(self, entry: FileEntry, category: str) -> str | None: ...


class Categorizer:
    """Maps file names to category folders.

    Attributes:
        categories: Category name to extensions (lowercase, with dot)
    """

    def __init__(self, categories: dict[str, tuple[str, ...]] | None = None) -> None:
        self.categories = categories if categories is not None else CATEGORIES
        self._by_extension: dict[str, str] = {}
        for name, extensions in self.categories.items():
            for ext in extensions:
                self._by_extension.setdefault(ext.lower(), name)

    def category_for(self, filename: str) -> str:
        """Return the category for ``filename``, or ``Others``."""
        suffix = PurePath(filename).suffix.lower()
        return self._by_extension.get(suffix, FALLBACK_CATEGORY)
