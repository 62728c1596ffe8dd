"""
Server configuration.

A ``ServerConfig`` is built once at process start and handed to every
component that needs it. Request handling code never reads the environment.
"""

import json
import os
from dataclasses import dataclass, asdict, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dotenv import dotenv_values

from shared.constants import (
    DATABASE_RELATIVE_PATH,
    DEFAULT_DATA_DIR,
    DEFAULT_HOST,
    DEFAULT_PORT,
    INITIAL_CHUNK_BYTES,
    MAX_CHUNK_BYTES,
)
from shared.models import ChunkPolicy, StorageProvider

# Environment variable -> ServerConfig field
ENV_KEYS = {
    "HOST": "host",
    "PORT": "port",
    "DATA_DIR": "data_dir",
    "DATABASE_PATH": "database_path",
    "JWT_SECRET": "jwt_secret",
    "APP_ENV": "env",
    "LOG_LEVEL": "log_level",
    "CORS_ORIGINS": "cors_origins",
    "STORAGE_PROVIDER": "storage_provider",
    "S3_BUCKET": "s3_bucket",
    "S3_ENDPOINT": "s3_endpoint",
    "S3_REGION": "s3_region",
    "S3_ACCOUNT_ID": "s3_account_id",
    "S3_ACCESS_KEY_ID": "s3_access_key_id",
    "S3_SECRET_ACCESS_KEY": "s3_secret_access_key",
    "STREAM_INITIAL_CHUNK_BYTES": "initial_chunk_bytes",
    "STREAM_MAX_CHUNK_BYTES": "max_chunk_bytes",
}

INT_FIELDS = {"port", "initial_chunk_bytes", "max_chunk_bytes"}
SECRET_FIELDS = {"jwt_secret", "s3_access_key_id", "s3_secret_access_key"}


@dataclass
class ServerConfig:
    """
    Settings for the streaming server.

    Values are layered: defaults, then an optional JSON file, then a ``.env``
    file, then the process environment.
    """
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    data_dir: str = DEFAULT_DATA_DIR
    database_path: Optional[str] = None
    jwt_secret: str = ""
    env: str = "development"
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    storage_provider: StorageProvider = StorageProvider.LOCAL
    s3_bucket: Optional[str] = None
    s3_endpoint: Optional[str] = None
    s3_region: Optional[str] = None
    s3_account_id: Optional[str] = None
    s3_access_key_id: Optional[str] = None
    s3_secret_access_key: Optional[str] = None
    initial_chunk_bytes: int = INITIAL_CHUNK_BYTES
    max_chunk_bytes: int = MAX_CHUNK_BYTES

    @property
    def resolved_data_dir(self) -> Path:
        return Path(self.data_dir).expanduser().absolute()

    @property
    def resolved_database_path(self) -> Path:
        if self.database_path:
            return Path(self.database_path).expanduser().absolute()
        return self.resolved_data_dir / DATABASE_RELATIVE_PATH

    @property
    def chunk_policy(self) -> ChunkPolicy:
        return ChunkPolicy(initial_bytes=self.initial_chunk_bytes,
                           steady_bytes=self.max_chunk_bytes)

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    def to_dict(self, redact: bool = False) -> Dict[str, Any]:
        """Convert config to dictionary, optionally masking secrets."""
        data = asdict(self)
        data['storage_provider'] = self.storage_provider.value
        if redact:
            for name in SECRET_FIELDS:
                if data.get(name):
                    data[name] = "***"
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ServerConfig':
        """Create ServerConfig from dictionary, filtering unknown keys."""
        field_names = {f.name for f in fields(cls)}
        filtered_data = {k: v for k, v in data.items() if k in field_names}
        return cls()._merged(filtered_data)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'ServerConfig':
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def load(cls, config_file: Optional[str] = None, env_file: Optional[str] = ".env",
             environ: Optional[Mapping[str, str]] = None) -> 'ServerConfig':
        """
        Build the effective configuration.

        Args:
            config_file: Optional JSON file with field names as keys
            env_file: ``.env`` file read with python-dotenv (skipped if missing)
            environ: Environment mapping, defaults to ``os.environ``

        Returns:
            ServerConfig instance

        Raises:
            ValueError: If a value cannot be coerced to its field type
        """
        config = cls()
        if config_file:
            config = cls.from_json(Path(config_file).expanduser().read_text())

        overrides: Dict[str, Any] = {}
        if env_file and Path(env_file).expanduser().exists():
            overrides.update(_env_to_fields(dotenv_values(Path(env_file).expanduser())))
        overrides.update(_env_to_fields(os.environ if environ is None else environ))
        return config._merged(overrides)

    def _merged(self, values: Mapping[str, Any]) -> 'ServerConfig':
        data = asdict(self)
        for name, raw in values.items():
            data[name] = _coerce(name, raw)
        config = ServerConfig(**data)
        ChunkPolicy(config.initial_chunk_bytes, config.max_chunk_bytes)
        return config


def _env_to_fields(env: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    return {
        ENV_KEYS[key]: value
        for key, value in env.items()
        if key in ENV_KEYS and value not in (None, "")
    }


def _coerce(name: str, raw: Any) -> Any:
    if raw is None:
        return None
    if name in INT_FIELDS:
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid integer for {name}: {raw!r}")
    if name == "storage_provider":
        if isinstance(raw, StorageProvider):
            return raw
        try:
            return StorageProvider(str(raw).lower())
        except ValueError:
            raise ValueError(f"Unknown storage provider: {raw!r}")
    if name == "cors_origins" and isinstance(raw, str):
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return raw
