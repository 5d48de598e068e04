"""
Title index storage interface.

The title index is a single document mapping conversation identity to title.
It is read in full at startup and rewritten in full on every update.

Concrete implementations: 'JSONFileTitleDatabase', 'InMemoryTitleDatabase'.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping


class TitleDatabase(ABC):
    """Abstract repository for the conversation title index."""

    @abstractmethod
    async def load_titles(self) -> dict[str, str]:
        pass

    @abstractmethod
    async def save_titles(self, titles: Mapping[str, str]) -> None:
        pass
