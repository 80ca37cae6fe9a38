"""
Second pass over mapping rows that still have no Panda video.

Rows end up pending when Panda accepted an import without returning an id.
Once Panda has finished processing, the video can be found by title in the
folder it was imported into.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from library_mirror.config import get_settings
from library_mirror.clients.errors import RequestError
from library_mirror.clients.panda import PandaClient
from library_mirror.sync.mapping_store import MappingStore, VideoMappingRecord

logger = logging.getLogger(__name__)


@dataclass
class BackfillStats:
    pending: int = 0
    resolved: int = 0
    still_missing: int = 0
    errors: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return (
            f"Pending rows: {self.pending}\n"
            f"Resolved: {self.resolved}\n"
            f"Still missing: {self.still_missing}\n"
            f"Errors: {len(self.errors)}"
        )


def backfill_unmatched(
    store: MappingStore,
    target: PandaClient,
    delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BackfillStats:
    """
    Look up pending rows on Panda and fill in their target ids.

    Args:
        store: Mapping store holding the pending rows
        target: Panda client used for the title search
        delay: Seconds between rows (or the folder delay from settings)
        sleep: Sleep function for the pauses

    Returns:
        BackfillStats with results
    """
    if delay is None:
        delay = get_settings().folder_delay_seconds

    stats = BackfillStats()
    rows = store.list_unmatched()
    stats.pending = len(rows)

    if not rows:
        logger.info("[Sync] No pending videos")
        return stats

    logger.info(f"[Sync] Found {len(rows)} videos without a Panda id")

    for row in rows:
        if not row.target_folder_id or not row.title:
            stats.still_missing += 1
            stats.errors.append(f"{row.source_video_ref}: no folder or title to search with")
            continue

        try:
            candidate = target.find_video_by_title(row.target_folder_id, row.title)
        except RequestError as e:
            stats.errors.append(f"{row.source_video_ref}: {e}")
            candidate = None

        if candidate is None:
            logger.info(f"[Sync] \"{row.title}\" still not on Panda")
            stats.still_missing += 1
        else:
            target_id = target.embed_url(candidate) or candidate.id
            store.upsert(VideoMappingRecord(
                source_video_ref=row.source_video_ref,
                target_video_id=target_id,
                target_streaming_ref=candidate.websocket_url or row.target_streaming_ref,
                title=row.title,
                target_folder_id=row.target_folder_id,
            ))
            logger.info(f"[Sync] {row.title} -> {target_id}")
            stats.resolved += 1

        if delay > 0:
            sleep(delay)

    return stats
