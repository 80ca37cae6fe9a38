"""
Depth-first mirror of the Vimeo folder tree onto Panda Video.

For every folder in a listing page (in API order):
1. Resolve (find or create) the matching Panda folder
2. Reconcile the folder's videos, page by page
3. Recurse into the folder's children with the Panda folder as parent
Only then is the next folder, or the next listing page, processed.

A failed remote call skips the folder or video it belongs to; the run
carries on with its siblings. Anything else (the mapping store going
away, the root listing failing) ends the run.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Literal, Optional

from library_mirror.config import get_settings
from library_mirror.clients.errors import FormatError, RequestError
from library_mirror.clients.vimeo import VimeoClient, VimeoFolder
from library_mirror.sync.folder_resolver import FolderResolver
from library_mirror.sync.video_matcher import MatchResult, VideoMatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkippedItem:
    kind: Literal["folder", "video", "listing"]
    name: str
    reason: str


@dataclass
class MirrorStats:
    """Statistics from a mirror run."""

    folders_visited: int = 0
    folders_found: int = 0
    folders_created: int = 0
    folders_cached: int = 0
    videos_seen: int = 0
    already_mapped: int = 0
    matched: int = 0
    uploaded: int = 0
    unmatched: int = 0
    skipped: list[SkippedItem] = field(default_factory=list)

    @property
    def folders_skipped(self) -> int:
        return sum(1 for item in self.skipped if item.kind == "folder")

    @property
    def videos_skipped(self) -> int:
        return sum(1 for item in self.skipped if item.kind == "video")

    @property
    def listings_skipped(self) -> int:
        return sum(1 for item in self.skipped if item.kind == "listing")

    def skip(self, kind: Literal["folder", "video", "listing"], name: str, reason: str) -> None:
        logger.warning(f"[Skip] {kind.capitalize()} \"{name}\": {reason}")
        self.skipped.append(SkippedItem(kind=kind, name=name, reason=reason))

    def record(self, result: MatchResult) -> None:
        if result.status == "already_mapped":
            self.already_mapped += 1
        elif result.status == "matched":
            self.matched += 1
        elif result.status == "uploaded":
            self.uploaded += 1
        else:
            self.unmatched += 1

    def __str__(self) -> str:
        return (
            f"Folders visited: {self.folders_visited} "
            f"(found {self.folders_found}, created {self.folders_created}, "
            f"cached {self.folders_cached})\n"
            f"Videos seen: {self.videos_seen}\n"
            f"Already mapped: {self.already_mapped}\n"
            f"Matched: {self.matched}\n"
            f"Imported: {self.uploaded}\n"
            f"Not on Panda: {self.unmatched}\n"
            f"Skipped: {self.folders_skipped} folders, {self.videos_skipped} videos, "
            f"{self.listings_skipped} listings"
        )


class HierarchyWalker:
    """
    Drives the whole mirror.

    Usage:
        walker = HierarchyWalker(vimeo, FolderResolver(panda), VideoMatcher(panda, store))
        stats = walker.run()
    """

    def __init__(
        self,
        source: VimeoClient,
        resolver: FolderResolver,
        matcher: VideoMatcher,
        video_delay: Optional[float] = None,
        folder_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the walker.

        Args:
            source: Vimeo client listing folders and videos
            resolver: Folder resolver holding the run's folder cache
            matcher: Video matcher writing to the mapping store
            video_delay: Seconds to pause after each video (or from settings)
            folder_delay: Seconds to pause after each folder (or from settings)
            sleep: Sleep function for the pauses
        """
        settings = get_settings()
        self.source = source
        self.resolver = resolver
        self.matcher = matcher
        self.video_delay = settings.video_delay_seconds if video_delay is None else video_delay
        self.folder_delay = settings.folder_delay_seconds if folder_delay is None else folder_delay
        self._sleep = sleep

    def _pause(self, seconds: float) -> None:
        if seconds > 0:
            self._sleep(seconds)

    def run(self, root_uri: Optional[str] = None) -> MirrorStats:
        """
        Mirror the tree below root_uri (the account root by default).

        Raises:
            RequestError: If the root listing itself cannot be fetched
        """
        root_uri = root_uri or get_settings().root_folder_uri
        stats = MirrorStats()

        found, created, cached = (
            self.resolver.found, self.resolver.created, self.resolver.cache_hits
        )

        logger.info(f"Mirroring Vimeo tree from {root_uri}")
        self.walk(root_uri, None, stats)

        stats.folders_found = self.resolver.found - found
        stats.folders_created = self.resolver.created - created
        stats.folders_cached = self.resolver.cache_hits - cached
        logger.info("Mirror finished")
        return stats

    def walk(
        self,
        listing_uri: str,
        parent_id: Optional[str],
        stats: MirrorStats,
        parent: Optional[VimeoFolder] = None,
    ) -> None:
        """
        Visit every folder of a listing, recursing depth-first.

        A failed page of a child listing (parent given) is recorded as a
        skipped listing and ends that listing only. The root listing
        propagates its errors.
        """
        try:
            for folder in self.source.iter_folders(listing_uri):
                try:
                    self.visit_folder(folder, parent_id, stats)
                except RequestError as e:
                    stats.skip("folder", folder.name, str(e))
                self._pause(self.folder_delay)
        except RequestError as e:
            if parent is None:
                raise
            stats.skip("listing", listing_uri, f"subfolders of \"{parent.name}\" not listed: {e}")

    def visit_folder(self, folder: VimeoFolder, parent_id: Optional[str], stats: MirrorStats) -> None:
        target_id = self.resolver.resolve(folder.uri, folder.name, parent_id)
        if target_id is None:
            stats.skip("folder", folder.name, "no matching Panda folder")
            return

        stats.folders_visited += 1

        try:
            self.reconcile_videos(folder, target_id, stats)
        except RequestError as e:
            # Listing failed part-way; the subfolders are still worth visiting
            stats.skip("folder", folder.name, f"video listing failed: {e}")

        if folder.items_uri:
            self.walk(folder.items_uri, target_id, stats, parent=folder)

    def reconcile_videos(self, folder: VimeoFolder, target_id: str, stats: MirrorStats) -> None:
        for video in self.source.iter_videos(folder):
            stats.videos_seen += 1
            try:
                result = self.matcher.reconcile(video, target_id)
            except (FormatError, RequestError) as e:
                stats.skip("video", video.title, str(e))
            else:
                stats.record(result)
            self._pause(self.video_delay)
