"""
Vimeo video -> Panda video reconciliation.

For each Vimeo video:
1. Derive its mapping key (the Vimeo player URL)
2. Skip it if the mapping store already points it at a Panda video
3. Otherwise search its Panda folder by title and record the first hit
4. Optionally ask Panda to import the video when nothing matched
"""

import logging
from dataclasses import dataclass
from typing import Literal, Optional

from library_mirror.config import get_settings
from library_mirror.clients.panda import PandaClient
from library_mirror.clients.vimeo import VimeoVideo, format_vimeo_player_url
from library_mirror.sync.mapping_store import MappingStore, VideoMappingRecord

logger = logging.getLogger(__name__)

MatchStatus = Literal["already_mapped", "matched", "uploaded", "unmatched"]


@dataclass(frozen=True)
class MatchResult:
    """Outcome of reconciling one Vimeo video."""

    source_video_ref: str
    status: MatchStatus
    target_id: Optional[str] = None
    target_streaming_ref: Optional[str] = None
    reason: Optional[str] = None  # Why an unmatched video was not imported

    @property
    def matched(self) -> bool:
        return self.target_id is not None


class VideoMatcher:
    """
    Decides whether a Vimeo video already has a Panda counterpart.

    Duplicate titles inside one Panda folder are not disambiguated: the
    first video the search returns wins.
    """

    def __init__(
        self,
        target: PandaClient,
        store: MappingStore,
        upload_missing: Optional[bool] = None,
        player_domain: Optional[str] = None,
    ):
        """
        Initialize the matcher.

        Args:
            target: Panda client used for title search and imports
            store: Mapping store consulted and updated per video
            upload_missing: Import unmatched videos (or from settings)
            player_domain: Vimeo player domain for mapping keys (or from settings)
        """
        settings = get_settings()
        self.target = target
        self.store = store
        self.upload_missing = (
            settings.upload_missing_videos if upload_missing is None else upload_missing
        )
        self.player_domain = player_domain or settings.vimeo_player_domain

    def source_ref(self, video: VimeoVideo) -> str:
        """Mapping key for a video; raises FormatError for malformed URIs."""
        return format_vimeo_player_url(video.uri, self.player_domain)

    def reconcile(self, video: VimeoVideo, target_folder_id: Optional[str]) -> MatchResult:
        """
        Reconcile one Vimeo video against its Panda folder.

        Args:
            video: The Vimeo video
            target_folder_id: Panda folder the video should live in

        Returns:
            MatchResult describing what was found or done

        Raises:
            FormatError: If the video URI is not /videos/<id>
            RequestError: If a Panda call fails
        """
        source_ref = self.source_ref(video)

        existing = self.store.get(source_ref)
        if existing is not None and existing.is_matched:
            logger.info(f"[SKIP] Already mapped: {video.title}")
            return MatchResult(
                source_video_ref=source_ref,
                status="already_mapped",
                target_id=existing.target_video_id,
                target_streaming_ref=existing.target_streaming_ref,
            )

        candidate = self.target.find_video_by_title(target_folder_id, video.title)
        if candidate is not None:
            target_id = self.target.embed_url(candidate) or candidate.id
            self.store.upsert(VideoMappingRecord(
                source_video_ref=source_ref,
                target_video_id=target_id,
                target_streaming_ref=candidate.websocket_url,
                title=video.title,
                target_folder_id=target_folder_id,
            ))
            logger.info(f"[MAP] {video.title} -> {target_id}")
            return MatchResult(
                source_video_ref=source_ref,
                status="matched",
                target_id=target_id,
                target_streaming_ref=candidate.websocket_url,
            )

        logger.warning(f"[MISS] Not found on Panda: {video.title}")
        if existing is not None:
            # Imported earlier without an id; Panda is still processing it
            return MatchResult(
                source_video_ref=source_ref,
                status="unmatched",
                reason="import pending",
            )
        if self.upload_missing:
            return self._import(video, source_ref, target_folder_id)
        return MatchResult(source_video_ref=source_ref, status="unmatched")

    def _import(
        self, video: VimeoVideo, source_ref: str, target_folder_id: Optional[str]
    ) -> MatchResult:
        """Hand an unmatched video to the Panda import endpoint."""
        if not video.download_url:
            logger.error(f"[Vimeo] Video \"{video.title}\" has no download link. Not importing.")
            return MatchResult(
                source_video_ref=source_ref,
                status="unmatched",
                reason="no download link",
            )

        if target_folder_id is None:
            return MatchResult(
                source_video_ref=source_ref,
                status="unmatched",
                reason="no target folder",
            )

        response = self.target.import_video(
            target_folder_id, video.title, video.description, video.download_url
        )
        target_id = response.get("id")
        target_id = None if target_id is None else str(target_id)
        streaming_ref = response.get("websocket_url")

        # A null target id stays pending until backfill finds the video
        self.store.upsert(VideoMappingRecord(
            source_video_ref=source_ref,
            target_video_id=target_id,
            target_streaming_ref=streaming_ref,
            title=video.title,
            target_folder_id=target_folder_id,
        ))
        return MatchResult(
            source_video_ref=source_ref,
            status="uploaded",
            target_id=target_id,
            target_streaming_ref=streaming_ref,
        )
