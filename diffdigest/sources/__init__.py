"""Sources of merged changes to write notes for."""

from diffdigest.sources.base import DiffSource
from diffdigest.sources.git import GitHistorySource

__all__ = ["DiffSource", "GitHistorySource"]
