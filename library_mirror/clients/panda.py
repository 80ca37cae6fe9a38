"""
Panda Video API access (the target side of the mirror).

Endpoints used:
- GET  /folders                      -> {"folders": [{id, name, parent_folder_id}]}
- POST /folders                      -> {"id": ...}
- GET  /videos?folder_id=&title=     -> {"videos": [...]}
- POST <import url>                  -> {"id": ..., "websocket_url": ...}
"""

import logging
from dataclasses import dataclass
from typing import Optional

from library_mirror.config import get_settings
from library_mirror.clients.errors import RequestError
from library_mirror.clients.http import ResilientClient

logger = logging.getLogger(__name__)


def format_panda_embed_url(external_id: str, player_host: str) -> str:
    """Public embed URL for a Panda video external id."""
    return f"https://{player_host}/embed/?v={external_id}"


def _optional_str(value) -> Optional[str]:
    return None if value is None else str(value)


@dataclass(frozen=True)
class PandaFolder:
    id: str
    name: str
    parent_folder_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "PandaFolder":
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            parent_folder_id=_optional_str(data.get("parent_folder_id")),
        )


@dataclass(frozen=True)
class PandaVideo:
    id: str
    title: str
    video_external_id: Optional[str] = None
    websocket_url: Optional[str] = None
    folder_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "PandaVideo":
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            video_external_id=_optional_str(data.get("video_external_id")),
            websocket_url=data.get("websocket_url"),
            folder_id=_optional_str(data.get("folder_id")),
        )


class PandaClient:
    """Folder and video operations against the Panda Video API."""

    def __init__(
        self,
        http: Optional[ResilientClient] = None,
        api_token: Optional[str] = None,
        import_url: Optional[str] = None,
        player_host: Optional[str] = None,
    ):
        """
        Initialize the client.

        Args:
            http: Pre-built request client (built from settings if omitted)
            api_token: Panda API key (or from settings)
            import_url: Absolute URL of the import endpoint (or from settings)
            player_host: Host of the public embed player (or from settings)
        """
        settings = get_settings()
        self.import_url = import_url or settings.panda_import_url
        self.player_host = player_host or settings.panda_player_host

        if http is None:
            token = api_token or settings.panda_api_token
            if not token:
                raise ValueError(
                    "Panda API token required. Set PANDA_API_TOKEN in .env"
                )
            http = ResilientClient(
                settings.panda_api_base,
                headers={"Authorization": token, "Accept": "application/json"},
                timeout=settings.panda_timeout_seconds,
                max_attempts=settings.panda_max_attempts,
                rate_limit_fallback=settings.rate_limit_fallback_seconds,
                network_backoff=settings.network_backoff_seconds,
                name="Panda",
            )
        self.http = http

    def close(self) -> None:
        self.http.close()

    def list_folders(self) -> list[PandaFolder]:
        """List every folder in the account (the endpoint is not paginated)."""
        data = self.http.get("/folders")
        folders = data.get("folders") if isinstance(data, dict) else None
        if not isinstance(folders, list):
            return []
        return [PandaFolder.from_api(f) for f in folders if isinstance(f, dict) and "id" in f]

    def create_folder(self, name: str, parent_folder_id: Optional[str] = None) -> str:
        """
        Create a folder and return its id.

        Raises:
            RequestError: If the API fails or answers without an id
        """
        payload = {"name": name}
        if parent_folder_id is not None:
            payload["parent_folder_id"] = parent_folder_id

        data = self.http.post("/folders", payload)
        if not isinstance(data, dict) or not data.get("id"):
            raise RequestError(
                f"Unexpected response creating folder \"{name}\": {data!r}",
                url=self.http.build_url("/folders"),
            )

        logger.info(f"[Panda] Folder created: \"{name}\" (ID: {data['id']})")
        return str(data["id"])

    def find_video_by_title(self, folder_id: Optional[str], title: str) -> Optional[PandaVideo]:
        """
        Search a folder for a video with the given title.

        The API may return several candidates; the first one is used as-is.
        """
        params = {"title": title}
        if folder_id is not None:
            params["folder_id"] = folder_id

        data = self.http.get("/videos", params=params)
        videos = data.get("videos") if isinstance(data, dict) else None
        if not videos or not isinstance(videos[0], dict):
            return None
        return PandaVideo.from_api(videos[0])

    def import_video(
        self, folder_id: str, title: str, description: str, source_url: str
    ) -> dict:
        """
        Ask Panda to fetch and transcode a video from a remote URL.

        Returns:
            The raw import response (id and websocket_url when accepted)
        """
        payload = {
            "folder_id": folder_id,
            "title": title,
            "description": description,
            "url": source_url,
        }
        data = self.http.post(self.import_url, payload)
        logger.info(f"[Panda] Import accepted for \"{title}\"")
        return data if isinstance(data, dict) else {}

    def embed_url(self, video: PandaVideo) -> Optional[str]:
        """Public embed URL for a video, or None without an external id."""
        if not video.video_external_id:
            return None
        return format_panda_embed_url(video.video_external_id, self.player_host)
