"""
SQLite Database Manager for the streaming service.
Read-side lookups of tracks and crates plus size reconciliation.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional
from shared.models import Track

TRACK_COLUMNS = (
    "id, owner_user_id, original_filename, content_type, size_bytes, file_path, "
    "duration_seconds, title, artist, album, genre, year, sample_rate, bitrate, "
    "created_at, updated_at"
)


class DatabaseManager:
    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _get_connection(self):
        conn = sqlite3.connect(self.db_path)
        # Enable WAL mode for concurrent readers
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self):
        """Create the tables this service reads if they do not exist yet."""
        with self._get_connection() as conn:
            try:
                conn.execute("BEGIN TRANSACTION")

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS tracks (
                        id TEXT PRIMARY KEY,
                        owner_user_id TEXT NOT NULL,
                        original_filename TEXT NOT NULL,
                        content_type TEXT NOT NULL,
                        size_bytes INTEGER NOT NULL,
                        duration_seconds REAL,
                        title TEXT,
                        artist TEXT,
                        album TEXT,
                        genre TEXT,
                        year INTEGER,
                        sample_rate INTEGER,
                        bitrate INTEGER,
                        file_path TEXT NOT NULL,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS playlists (
                        id TEXT PRIMARY KEY,
                        owner_user_id TEXT NOT NULL,
                        name TEXT NOT NULL,
                        description TEXT,
                        is_default BOOLEAN NOT NULL DEFAULT 0,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS playlist_tracks (
                        id TEXT PRIMARY KEY,
                        playlist_id TEXT NOT NULL REFERENCES playlists(id) ON DELETE CASCADE,
                        track_id TEXT NOT NULL REFERENCES tracks(id) ON DELETE CASCADE,
                        position INTEGER NOT NULL DEFAULT 0,
                        added_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        UNIQUE (playlist_id, track_id)
                    )
                """)

                # Schema Migrations (crate sharing came after the first schema)
                cursor = conn.execute("PRAGMA table_info(playlists)")
                columns = [row[1] for row in cursor.fetchall()]
                if 'is_public' not in columns:
                    conn.execute("ALTER TABLE playlists ADD COLUMN is_public BOOLEAN NOT NULL DEFAULT 0")

                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_playlist_tracks_track ON playlist_tracks(track_id)"
                )
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

    def get_track(self, track_id: str) -> Optional[Track]:
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT {TRACK_COLUMNS} FROM tracks WHERE id = ?", (track_id,)
            ).fetchone()
            return self._row_to_track(row) if row else None

    def is_track_in_public_playlist(self, track_id: str) -> bool:
        """True if any crate marked public contains the track."""
        with self._get_connection() as conn:
            row = conn.execute("""
                SELECT 1 FROM playlist_tracks pt
                JOIN playlists p ON p.id = pt.playlist_id
                WHERE pt.track_id = ? AND p.is_public = 1
                LIMIT 1
            """, (track_id,)).fetchone()
            return row is not None

    def iter_tracks(self, batch_size: int = 100) -> Iterator[Track]:
        """Yield every track, paging through the table."""
        offset = 0
        while True:
            with self._get_connection() as conn:
                rows = conn.execute(
                    f"SELECT {TRACK_COLUMNS} FROM tracks ORDER BY created_at, id LIMIT ? OFFSET ?",
                    (batch_size, offset),
                ).fetchall()
            if not rows:
                return
            for row in rows:
                yield self._row_to_track(row)
            offset += batch_size

    def update_track_size(self, track_id: str, size_bytes: int) -> bool:
        """Record the live blob size for a track. Returns False if the track is gone."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE tracks SET size_bytes = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (size_bytes, track_id),
            )
            return cursor.rowcount > 0

    def _row_to_track(self, row: sqlite3.Row) -> Track:
        return Track.from_dict(dict(row))
