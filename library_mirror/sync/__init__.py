"""
Mirror package: folder resolution, video matching, mapping persistence
and the tree walker that drives them.
"""

from library_mirror.sync.mapping_store import (
    MappingStore,
    SQLiteMappingStore,
    SupabaseMappingStore,
    VideoMappingRecord,
    get_mapping_store,
)
from library_mirror.sync.folder_resolver import FolderCache, FolderResolver
from library_mirror.sync.video_matcher import MatchResult, VideoMatcher
from library_mirror.sync.walker import HierarchyWalker, MirrorStats, SkippedItem
from library_mirror.sync.backfill import BackfillStats, backfill_unmatched

__all__ = [
    "MappingStore",
    "SQLiteMappingStore",
    "SupabaseMappingStore",
    "VideoMappingRecord",
    "get_mapping_store",
    "FolderCache",
    "FolderResolver",
    "MatchResult",
    "VideoMatcher",
    "HierarchyWalker",
    "MirrorStats",
    "SkippedItem",
    "BackfillStats",
    "backfill_unmatched",
]
