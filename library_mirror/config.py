"""
Configuration management using Pydantic Settings.
Loads from environment variables with sensible defaults for development.
"""

from pathlib import Path
from functools import lru_cache
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Vimeo (source library)
    vimeo_access_token: str = ""
    vimeo_url_base: str = "https://api.vimeo.com"
    vimeo_user_id: str = ""
    vimeo_player_domain: str = "vimeo.com"  # player.<domain>/video/<id>
    vimeo_page_size: int = 100  # Max allowed by the API
    vimeo_max_attempts: int = 5
    vimeo_timeout_seconds: float = 60.0  # Long listings hang up below this

    # Panda Video (target library)
    panda_api_token: str = ""
    panda_api_base: str = "https://api-v2.pandavideo.com.br"
    panda_import_url: str = "https://import.pandavideo.com:9443/videos"
    panda_player_host: str = "player-vz-4cab7bf9-47f.tv.pandavideo.com.br"
    panda_max_attempts: int = 3
    panda_timeout_seconds: float = 15.0

    # Reactive backoff (server-signaled limits and dropped connections)
    rate_limit_fallback_seconds: float = 2.0  # Used when 429 has no retry-after
    network_backoff_seconds: float = 2.0

    # Mirror policy
    create_missing_folders: bool = True  # False = read-only folder mirror
    upload_missing_videos: bool = False  # Import unmatched videos into Panda
    video_delay_ms: int = 300  # Pause between video reconciliations
    folder_delay_ms: int = 500  # Pause between folder visits

    # Mapping store: "sqlite" for local, "supabase" for production
    store_backend: Literal["sqlite", "supabase"] = "sqlite"
    mapping_db_path: Path = Path(__file__).parent.parent / "data/mappings.sqlite"
    mapping_table: str = "vimeo_panda_videos"
    supabase_url: str = ""  # e.g., https://xxx.supabase.co
    supabase_key: str = ""  # anon/service key

    # Logging
    log_level: str = "INFO"

    @property
    def root_folder_uri(self) -> str:
        """Listing URI for the top level of the Vimeo folder tree."""
        return (
            f"/users/{self.vimeo_user_id}/folders/root"
            "?direction=asc&exclude_personal_team_folder=true"
            "&exclude_shared_videos=false&no_padding=true&sort=alphabetical"
        )

    @property
    def video_delay_seconds(self) -> float:
        return self.video_delay_ms / 1000.0

    @property
    def folder_delay_seconds(self) -> float:
        return self.folder_delay_ms / 1000.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
