import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from shared.api import create_app
from shared.config import ServerConfig
from shared.database import DatabaseManager
from storage.local_provider import LocalStorageProvider

SECRET = "cratedrop-test-secret-0123456789abcdef"

OWNER = "user-owner"
OTHER = "user-other"
ADMIN = "user-admin"


def make_payload(size: int) -> bytes:
    return bytes(i % 251 for i in range(size))


@pytest.fixture
def config(tmp_path):
    return ServerConfig(data_dir=str(tmp_path / "data"), jwt_secret=SECRET)


@pytest.fixture
def db(config):
    return DatabaseManager(str(config.resolved_database_path))


@pytest.fixture
def storage(config):
    return LocalStorageProvider(str(config.resolved_data_dir))


@pytest.fixture
def add_track(db, storage):
    """Write a blob and its tracks row; returns the Track."""
    def _add(data: bytes, owner: str = OWNER, filename: str = "song.mp3",
             content_type: str = "audio/mpeg", size_bytes=None, track_id=None, write_blob=True):
        track_id = track_id or uuid.uuid4().hex
        ext = "." + filename.rsplit(".", 1)[-1].lower()
        file_path = storage.track_path(owner, track_id, ext)
        if write_blob:
            blob = storage.base_path / file_path
            blob.parent.mkdir(parents=True, exist_ok=True)
            blob.write_bytes(data)
        with db._get_connection() as conn:
            conn.execute(
                "INSERT INTO tracks (id, owner_user_id, original_filename, content_type, "
                "size_bytes, file_path) VALUES (?, ?, ?, ?, ?, ?)",
                (track_id, owner, filename, content_type,
                 len(data) if size_bytes is None else size_bytes, file_path),
            )
        return db.get_track(track_id)
    return _add


@pytest.fixture
def add_to_crate(db):
    """Put a track in a new crate owned by ``owner``."""
    def _add(track_id: str, owner: str = OWNER, public: bool = False):
        playlist_id = uuid.uuid4().hex
        with db._get_connection() as conn:
            conn.execute(
                "INSERT INTO playlists (id, owner_user_id, name, is_public) VALUES (?, ?, ?, ?)",
                (playlist_id, owner, "Crate", 1 if public else 0),
            )
            conn.execute(
                "INSERT INTO playlist_tracks (id, playlist_id, track_id) VALUES (?, ?, ?)",
                (uuid.uuid4().hex, playlist_id, track_id),
            )
        return playlist_id
    return _add


@pytest.fixture
def make_token():
    def _make(user_id: str = OWNER, role: str = "user", expires_in: int = 3600,
              secret: str = SECRET, **claims):
        payload = {
            "user_id": user_id,
            "role": role,
            "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        }
        payload.update(claims)
        return jwt.encode(payload, secret, algorithm="HS256")
    return _make


@pytest.fixture
def auth(make_token):
    """Authorization headers for a user."""
    def _auth(user_id: str = OWNER, role: str = "user", **extra):
        headers = {"Authorization": f"Bearer {make_token(user_id, role)}"}
        headers.update(extra)
        return headers
    return _auth


@pytest.fixture
def app(config, db, storage):
    app = create_app(config, db=db, storage=storage)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
