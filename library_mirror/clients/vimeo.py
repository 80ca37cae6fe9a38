"""
Vimeo folder and video discovery (the source side of the mirror).

Folder listings (/users/{id}/folders/root and every folder's items
connection) return entries of type "folder" or "video"; only folder entries
are walked here, videos are read from each folder's videos connection.
"""

import re
import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from library_mirror.config import get_settings
from library_mirror.clients.errors import FormatError
from library_mirror.clients.http import ResilientClient
from library_mirror.clients.pagination import iter_pages

logger = logging.getLogger(__name__)

VIDEO_URI_PATTERN = re.compile(r"/videos/(\d+)")


def format_vimeo_player_url(uri: str, domain: str = "vimeo.com") -> str:
    """
    Turn a video URI like /videos/123 into https://player.vimeo.com/video/123.

    Raises:
        FormatError: If the URI is not exactly /videos/<digits>
    """
    match = VIDEO_URI_PATTERN.fullmatch(uri or "")
    if not match:
        raise FormatError(f"Invalid video URI {uri!r}, expected /videos/<id>")
    return f"https://player.{domain}/video/{match.group(1)}"


@dataclass(frozen=True)
class VimeoFolder:
    """A folder entry from a Vimeo folder listing."""

    uri: str  # /users/1/projects/42
    name: str
    videos_uri: Optional[str] = None  # Connection listing the folder's videos
    items_uri: Optional[str] = None  # Connection listing the folder's children

    @classmethod
    def from_entry(cls, entry: dict) -> Optional["VimeoFolder"]:
        """Parse a listing entry; returns None for non-folder entries."""
        folder = entry.get("folder") if isinstance(entry, dict) else None
        if not folder or not folder.get("uri"):
            return None

        connections = (folder.get("metadata") or {}).get("connections") or {}
        return cls(
            uri=folder["uri"],
            name=folder.get("name") or "Untitled",
            videos_uri=(connections.get("videos") or {}).get("uri"),
            items_uri=(connections.get("items") or {}).get("uri"),
        )


@dataclass(frozen=True)
class VimeoVideo:
    """A video from a folder's videos connection."""

    uri: str  # /videos/123456
    title: str
    description: str = ""
    link: Optional[str] = None
    download_url: Optional[str] = None  # Widest available rendition

    @property
    def video_id(self) -> str:
        return self.uri.split("/")[-1] if self.uri else ""

    @classmethod
    def from_api(cls, video: dict) -> "VimeoVideo":
        downloads = [d for d in video.get("download") or [] if isinstance(d, dict)]
        downloads.sort(key=lambda d: d.get("width") or 0, reverse=True)
        download_url = downloads[0].get("link") if downloads else None

        return cls(
            uri=video.get("uri", ""),
            title=video.get("name") or "Untitled",
            description=video.get("description") or "",
            link=video.get("link"),
            download_url=download_url or None,
        )


class VimeoClient:
    """
    Read-only access to a Vimeo account's folder tree.

    All calls go through a ResilientClient; listings are lazy so that a
    caller can recurse into a folder before the next page is fetched.
    """

    def __init__(
        self,
        http: Optional[ResilientClient] = None,
        access_token: Optional[str] = None,
        page_size: Optional[int] = None,
        player_domain: Optional[str] = None,
    ):
        """
        Initialize the client.

        Args:
            http: Pre-built request client (built from settings if omitted)
            access_token: Vimeo API access token (or from settings)
            page_size: per_page for listings (or from settings)
            player_domain: Domain used in player URLs (or from settings)
        """
        settings = get_settings()
        self.page_size = page_size or settings.vimeo_page_size
        self.player_domain = player_domain or settings.vimeo_player_domain

        if http is None:
            token = access_token or settings.vimeo_access_token
            if not token:
                raise ValueError(
                    "Vimeo access token required. Set VIMEO_ACCESS_TOKEN in .env"
                )
            http = ResilientClient(
                settings.vimeo_url_base,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                    "Accept": "application/vnd.vimeo.*+json;version=3.4",
                },
                timeout=settings.vimeo_timeout_seconds,
                max_attempts=settings.vimeo_max_attempts,
                rate_limit_fallback=settings.rate_limit_fallback_seconds,
                network_backoff=settings.network_backoff_seconds,
                name="Vimeo",
            )
        self.http = http

    def close(self) -> None:
        self.http.close()

    def iter_folders(self, listing_uri: str) -> Iterator[VimeoFolder]:
        """Yield the folder entries of a folder listing, page by page."""
        for page in iter_pages(self.http, listing_uri, self.page_size):
            for entry in page["data"]:
                folder = VimeoFolder.from_entry(entry)
                if folder is None:
                    continue
                yield folder

    def iter_videos(self, folder: VimeoFolder) -> Iterator[VimeoVideo]:
        """Yield the videos directly inside a folder."""
        if not folder.videos_uri:
            logger.info(f"[Vimeo] Folder \"{folder.name}\" has no videos connection")
            return

        for page in iter_pages(self.http, folder.videos_uri, self.page_size):
            for video in page["data"]:
                if isinstance(video, dict):
                    yield VimeoVideo.from_api(video)

    def player_url(self, video: VimeoVideo) -> str:
        """Canonical player URL used as the mapping key."""
        return format_vimeo_player_url(video.uri, self.player_domain)
