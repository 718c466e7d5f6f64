"""Abstract source of merged changes."""

from __future__ import annotations

from abc import ABC, abstractmethod

from diffdigest.schemas.notes import DiffItem, DiffPage


class DiffSource(ABC):
    """Paginated list of merged changes, newest first."""

    @abstractmethod
    def fetch_page(self, page: int = 1, per_page: int | None = None) -> DiffPage:
        """Return one page of changes.

        Raises:
            ValueError: If page or per_page is below 1.
            SourceError: If the underlying store cannot be read.
        """

    def find(self, item_id: str) -> DiffItem | None:
        """Look up a change by id, scanning pages in order."""
        page: int | None = 1
        while page is not None:
            result = self.fetch_page(page)
            for item in result.diffs:
                if item.id == item_id:
                    return item
            page = result.next_page
        return None
