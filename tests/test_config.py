import json

import pytest

from shared.config import ServerConfig
from shared.models import ChunkPolicy, StorageProvider


def test_defaults():
    config = ServerConfig.load(env_file=None, environ={})
    assert config.port == 8080
    assert config.storage_provider == StorageProvider.LOCAL
    assert config.chunk_policy == ChunkPolicy(256 * 1024, 512 * 1024)
    assert config.cors_origins == ["*"]
    assert not config.is_production


def test_environment_overrides():
    config = ServerConfig.load(env_file=None, environ={
        "PORT": "9000",
        "JWT_SECRET": "s3cret",
        "STORAGE_PROVIDER": "R2",
        "S3_BUCKET": "crates",
        "CORS_ORIGINS": "https://a.example, https://b.example",
        "STREAM_MAX_CHUNK_BYTES": "1048576",
        "APP_ENV": "production",
        "UNRELATED": "ignored",
        "BASE_URL": "https://ignored.example",
    })
    assert config.port == 9000
    assert config.jwt_secret == "s3cret"
    assert config.storage_provider == StorageProvider.CLOUDFLARE_R2
    assert config.s3_bucket == "crates"
    assert config.cors_origins == ["https://a.example", "https://b.example"]
    assert config.chunk_policy.steady_bytes == 1048576
    assert config.is_production
    assert "base_url" not in config.to_dict()


def test_empty_values_are_ignored():
    config = ServerConfig.load(env_file=None, environ={"PORT": ""})
    assert config.port == 8080


def test_layering_file_then_dotenv_then_environ(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"port": 7000, "log_level": "DEBUG", "host": "127.0.0.1"}))
    env_file = tmp_path / ".env"
    env_file.write_text("PORT=7100\nJWT_SECRET=from-dotenv\n")

    config = ServerConfig.load(config_file=str(config_file), env_file=str(env_file),
                               environ={"PORT": "7200"})
    assert config.port == 7200
    assert config.jwt_secret == "from-dotenv"
    assert config.log_level == "DEBUG"
    assert config.host == "127.0.0.1"


def test_missing_env_file_is_skipped(tmp_path):
    config = ServerConfig.load(env_file=str(tmp_path / "missing.env"), environ={})
    assert config.jwt_secret == ""


@pytest.mark.parametrize("environ", [
    {"PORT": "eighty"},
    {"STORAGE_PROVIDER": "ftp"},
    {"STREAM_INITIAL_CHUNK_BYTES": "0"},
])
def test_invalid_values(environ):
    with pytest.raises(ValueError):
        ServerConfig.load(env_file=None, environ=environ)


def test_database_path(tmp_path):
    config = ServerConfig(data_dir=str(tmp_path))
    assert config.resolved_database_path == tmp_path / "db" / "cratedrop.sqlite"
    explicit = ServerConfig(data_dir=str(tmp_path), database_path=str(tmp_path / "x.db"))
    assert explicit.resolved_database_path == tmp_path / "x.db"


def test_redacted_dict_and_json_round_trip():
    config = ServerConfig(jwt_secret="s3cret", s3_secret_access_key="key",
                          storage_provider=StorageProvider.BACKBLAZE_B2)
    redacted = config.to_dict(redact=True)
    assert redacted["jwt_secret"] == "***"
    assert redacted["s3_secret_access_key"] == "***"
    assert redacted["s3_access_key_id"] is None
    assert ServerConfig.from_json(config.to_json()) == config
