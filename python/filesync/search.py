"""
Search - Diacritics-insensitive file name search over the index.

Matches are ranked exact name first, then prefix matches, then the rest in
name order. "Config.ts" counts as an exact match for "config" because the
name without its extension is compared too.
"""

import logging
from pathlib import PurePath
from typing import List, Optional

from .config import get_config, SyncConfig
from .index_store import IndexStore
from .models import FileIndexEntry, normalize_name
from .state import SyncState


logger = logging.getLogger(__name__)


def normalize(text: str) -> str:
    """Normalize a query: trim, strip diacritics, case-fold. "Café " -> "cafe"."""
    return normalize_name(text.strip())


def rank_key(entry: FileIndexEntry, normalized_query: str) -> tuple:
    name = entry.normalized_name
    exact = name == normalized_query or PurePath(name).stem == normalized_query
    starts = name.startswith(normalized_query)
    return (not exact, not starts, entry.file_name.casefold(), entry.file_name)


class SearchEngine:
    """Read-only search over the index store."""

    def __init__(self, state: SyncState, index_store: IndexStore, config: SyncConfig | None = None):
        self.config = config or get_config()
        self._state = state
        self._index = index_store

    def search(
        self,
        query: str,
        project_path: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[FileIndexEntry]:
        """
        Find files whose name contains the query.

        Args:
            query: Free text; an empty query matches every file
            project_path: Limit the search to this project's folders
            limit: Maximum results (default: config.result_limit)
        """
        normalized_query = normalize(query)
        limit = limit if limit is not None else self.config.result_limit

        if project_path is not None:
            results: List[FileIndexEntry] = []
            for folder in self._state.folders_for_project(project_path):
                results.extend(self._index.search_by_name(folder.id, normalized_query))
        else:
            results = self._index.search_by_name_global(normalized_query)

        results.sort(key=lambda e: rank_key(e, normalized_query))
        logger.debug(f"Search {query!r} (project={project_path}) matched {len(results)} files")
        return results[:limit]

    def list_files(
        self,
        project_path: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[FileIndexEntry]:
        """Browse mode: the first files in name order."""
        return self.search("", project_path, limit)
