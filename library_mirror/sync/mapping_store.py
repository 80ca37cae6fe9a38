"""
Persistent Vimeo -> Panda video mapping.

One table keyed by source_video_ref (the Vimeo player URL). Every write is
an upsert on that key, so re-running the mirror never duplicates rows.
Two backends share the MappingStore interface: SQLite for local runs and
Supabase for production.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from supabase import create_client, Client

from library_mirror.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class VideoMappingRecord:
    """A source video and its Panda counterpart (if known)."""

    source_video_ref: str  # https://player.vimeo.com/video/<id>
    target_video_id: Optional[str] = None  # Panda embed URL
    target_streaming_ref: Optional[str] = None  # Panda websocket_url
    title: Optional[str] = None
    target_folder_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def is_matched(self) -> bool:
        return self.target_video_id is not None

    def to_dict(self) -> dict:
        """Convert to dictionary for upsert."""
        return {
            "source_video_ref": self.source_video_ref,
            "target_video_id": self.target_video_id,
            "target_streaming_ref": self.target_streaming_ref,
            "title": self.title,
            "target_folder_id": self.target_folder_id,
            "updated_at": (self.updated_at or datetime.now(timezone.utc)).isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VideoMappingRecord":
        """Create from a database row."""
        return cls(
            source_video_ref=data["source_video_ref"],
            target_video_id=data.get("target_video_id"),
            target_streaming_ref=data.get("target_streaming_ref"),
            title=data.get("title"),
            target_folder_id=data.get("target_folder_id"),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


def _parse_datetime(value) -> Optional[datetime]:
    """Parse ISO datetime string."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        # Handle both Z suffix and +00:00
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None


class MappingStore(ABC):
    """Interface shared by the mapping store backends."""

    @abstractmethod
    def get(self, source_video_ref: str) -> Optional[VideoMappingRecord]:
        """Get a record by its source reference, or None."""

    @abstractmethod
    def upsert(self, record: VideoMappingRecord) -> VideoMappingRecord:
        """Insert a record or overwrite the existing row with the same key."""

    @abstractmethod
    def list_unmatched(self) -> list[VideoMappingRecord]:
        """Records whose target_video_id is still null."""

    @abstractmethod
    def get_stats(self) -> dict:
        """Counts of total, matched and unmatched rows."""

    def exists(self, source_video_ref: str) -> bool:
        return self.get(source_video_ref) is not None

    def has_target(self, source_video_ref: str) -> bool:
        """True when the row exists and already points at a Panda video."""
        record = self.get(source_video_ref)
        return record is not None and record.is_matched


class SQLiteMappingStore(MappingStore):
    """SQLite-backed mapping store."""

    def __init__(self, db_path: Path | str | None = None, table: str | None = None):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file (defaults to settings)
            table: Table name (defaults to settings)
        """
        settings = get_settings()
        self.db_path = Path(db_path) if db_path else settings.mapping_db_path
        self.table = table or settings.mapping_table

        # Ensure parent directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._get_connection() as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    source_video_ref TEXT PRIMARY KEY,
                    target_video_id TEXT,
                    target_streaming_ref TEXT,
                    title TEXT,
                    target_folder_id TEXT,
                    updated_at TEXT NOT NULL
                )
            """)

    def get(self, source_video_ref: str) -> Optional[VideoMappingRecord]:
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT * FROM {self.table} WHERE source_video_ref = ?",
                (source_video_ref,),
            ).fetchone()
        return VideoMappingRecord.from_dict(dict(row)) if row else None

    def upsert(self, record: VideoMappingRecord) -> VideoMappingRecord:
        record.updated_at = datetime.now(timezone.utc)
        data = record.to_dict()
        with self._get_connection() as conn:
            conn.execute(f"""
                INSERT INTO {self.table} (
                    source_video_ref, target_video_id, target_streaming_ref,
                    title, target_folder_id, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(source_video_ref) DO UPDATE SET
                    target_video_id = excluded.target_video_id,
                    target_streaming_ref = excluded.target_streaming_ref,
                    title = excluded.title,
                    target_folder_id = COALESCE(excluded.target_folder_id, target_folder_id),
                    updated_at = excluded.updated_at
            """, (
                data["source_video_ref"],
                data["target_video_id"],
                data["target_streaming_ref"],
                data["title"],
                data["target_folder_id"],
                data["updated_at"],
            ))

        logger.debug(f"[DB] Mapping saved: {record.source_video_ref} -> {record.target_video_id}")
        return record

    def list_unmatched(self) -> list[VideoMappingRecord]:
        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM {self.table} WHERE target_video_id IS NULL "
                "ORDER BY source_video_ref"
            ).fetchall()
        return [VideoMappingRecord.from_dict(dict(row)) for row in rows]

    def count(self) -> int:
        with self._get_connection() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {self.table}").fetchone()[0]

    def get_stats(self) -> dict:
        with self._get_connection() as conn:
            total, matched = conn.execute(
                f"SELECT COUNT(*), COUNT(target_video_id) FROM {self.table}"
            ).fetchone()
        return {"total": total, "matched": matched, "unmatched": total - matched}


class SupabaseMappingStore(MappingStore):
    """Supabase-backed mapping store."""

    def __init__(
        self,
        supabase_url: Optional[str] = None,
        supabase_key: Optional[str] = None,
        table: Optional[str] = None,
    ):
        """
        Initialize the store.

        Args:
            supabase_url: Supabase project URL (or from settings)
            supabase_key: Supabase anon/service key (or from settings)
            table: Table name (or from settings)
        """
        settings = get_settings()
        self.url = supabase_url or settings.supabase_url
        self.key = supabase_key or settings.supabase_key
        self.table = table or settings.mapping_table

        if not self.url or not self.key:
            raise ValueError(
                "Supabase credentials required. Set SUPABASE_URL and SUPABASE_KEY in .env"
            )

        self._client: Optional[Client] = None

    @property
    def client(self) -> Client:
        """Lazy-load Supabase client."""
        if self._client is None:
            self._client = create_client(self.url, self.key)
        return self._client

    def get(self, source_video_ref: str) -> Optional[VideoMappingRecord]:
        result = (
            self.client.table(self.table)
            .select("*")
            .eq("source_video_ref", source_video_ref)
            .execute()
        )
        if result.data:
            return VideoMappingRecord.from_dict(result.data[0])
        return None

    def upsert(self, record: VideoMappingRecord) -> VideoMappingRecord:
        record.updated_at = datetime.now(timezone.utc)
        data = record.to_dict()
        if data["target_folder_id"] is None:
            # Keep a previously stored folder id
            data.pop("target_folder_id")

        result = (
            self.client.table(self.table)
            .upsert(data, on_conflict="source_video_ref")
            .execute()
        )
        logger.debug(f"[DB] Mapping saved: {record.source_video_ref} -> {record.target_video_id}")
        if result.data:
            return VideoMappingRecord.from_dict(result.data[0])
        return record

    def list_unmatched(self) -> list[VideoMappingRecord]:
        result = (
            self.client.table(self.table)
            .select("*")
            .is_("target_video_id", "null")
            .order("source_video_ref")
            .execute()
        )
        return [VideoMappingRecord.from_dict(row) for row in result.data] if result.data else []

    def get_stats(self) -> dict:
        result = self.client.table(self.table).select("target_video_id").execute()
        rows = result.data or []
        matched = sum(1 for row in rows if row.get("target_video_id") is not None)
        return {"total": len(rows), "matched": matched, "unmatched": len(rows) - matched}


def get_mapping_store() -> MappingStore:
    """Build the mapping store selected by STORE_BACKEND."""
    settings = get_settings()
    if settings.store_backend == "supabase":
        return SupabaseMappingStore()
    return SQLiteMappingStore()
