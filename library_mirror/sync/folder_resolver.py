"""
Vimeo folder -> Panda folder resolution.

Panda folders are matched by exact name and exact parent id; nothing is
normalized or case-folded, so "Aulas" and "aulas " are different folders.
Results are memoized per Vimeo folder URI for the lifetime of one run.
"""

import logging
from typing import Optional

from library_mirror.clients.panda import PandaClient

logger = logging.getLogger(__name__)


class FolderCache:
    """
    Run-scoped Vimeo folder URI -> Panda folder id map.

    Entries are written once; a second write with a different id is a bug
    in the caller and raises.
    """

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._entries: dict[str, str] = dict(initial or {})

    def __contains__(self, source_folder_ref: str) -> bool:
        return source_folder_ref in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, source_folder_ref: str) -> Optional[str]:
        return self._entries.get(source_folder_ref)

    def set(self, source_folder_ref: str, target_folder_id: str) -> None:
        existing = self._entries.get(source_folder_ref)
        if existing is not None and existing != target_folder_id:
            raise ValueError(
                f"Folder {source_folder_ref} already mapped to {existing}, "
                f"refusing to remap to {target_folder_id}"
            )
        self._entries[source_folder_ref] = target_folder_id


class FolderResolver:
    """
    Finds or creates the Panda folder matching a Vimeo folder.

    With create_missing=False the resolver never writes to Panda and
    returns None for folders that do not exist yet.
    """

    def __init__(
        self,
        target: PandaClient,
        cache: Optional[FolderCache] = None,
        create_missing: bool = True,
    ):
        self.target = target
        self.cache = cache if cache is not None else FolderCache()
        self.create_missing = create_missing

        self.found = 0
        self.created = 0
        self.cache_hits = 0

    def find(self, name: str, parent_id: Optional[str]) -> Optional[str]:
        """Id of the Panda folder with this exact name under this exact parent."""
        for folder in self.target.list_folders():
            if folder.name == name and folder.parent_folder_id == parent_id:
                return folder.id
        return None

    def resolve(
        self, source_folder_ref: str, name: str, parent_id: Optional[str] = None
    ) -> Optional[str]:
        """
        Resolve a Vimeo folder to a Panda folder id.

        Args:
            source_folder_ref: Vimeo folder URI (cache key)
            name: Folder name, compared exactly
            parent_id: Panda id of the parent folder, None for the root

        Returns:
            Panda folder id, or None when missing and creation is disabled

        Raises:
            RequestError: If listing or creating folders fails
        """
        cached = self.cache.get(source_folder_ref)
        if cached is not None:
            self.cache_hits += 1
            logger.info(f"[Cache] Folder already mapped: \"{name}\" (Panda ID: {cached})")
            return cached

        folder_id = self.find(name, parent_id)
        if folder_id is not None:
            self.found += 1
            logger.info(f"[Panda] Folder found: \"{name}\" (ID: {folder_id})")
        elif self.create_missing:
            folder_id = self.target.create_folder(name, parent_id)
            self.created += 1
        else:
            logger.warning(f"[Skip] Folder not found on Panda: \"{name}\"")
            return None

        self.cache.set(source_folder_ref, folder_id)
        return folder_id
