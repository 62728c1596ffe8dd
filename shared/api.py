"""
HTTP API for the CrateDrop streaming service.

Build the Flask application with ``create_app(config)``. Everything a request
needs (configuration, database, stream service) is attached to the app at
construction time; handlers never read the environment.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS

from shared.access import can_stream, resolve_requester
from shared.config import ServerConfig
from shared.constants import RANGE_UNIT, SERVICE_NAME, SERVICE_VERSION
from shared.database import DatabaseManager
from shared.errors import AccessDenied, RangeError, StreamError, TrackNotFound
from shared.models import Track
from storage.provider_factory import StorageProviderFactory
from storage.storage_provider import BlobStorageProvider
from streamer.service import StreamService

logger = logging.getLogger(__name__)

EXTENSION_KEY = "cratedrop"


@dataclass
class AppContext:
    config: ServerConfig
    db: DatabaseManager
    streams: StreamService


api = Blueprint("api", __name__)


def _ctx() -> AppContext:
    return current_app.extensions[EXTENSION_KEY]


def error_response(status: int, code: str, message: str):
    return jsonify({"error": {"code": code, "message": message}}), status


def _authorized_track(track_id: str) -> Track:
    """Run identity, lookup and the access gate; nothing here touches storage."""
    ctx = _ctx()
    requester = resolve_requester(request, ctx.config.jwt_secret)

    track = ctx.db.get_track(track_id)
    if track is None:
        raise TrackNotFound(track_id)
    if not can_stream(requester, track, ctx.db):
        logger.info("User %s denied access to track %s", requester.user_id, track_id)
        raise AccessDenied(track_id)
    return track


@api.route('/api/healthz')
@api.route('/healthz')
def health_check():
    return jsonify({"status": "ok", "service": SERVICE_NAME, "version": SERVICE_VERSION})


@api.route('/api/tracks/<track_id>/stream', methods=['GET'])
@api.route('/tracks/<track_id>/stream', methods=['GET'])
def stream_track(track_id):
    """Serve audio in bounded 206 chunks, honouring single-range requests."""
    track = _authorized_track(track_id)
    return _ctx().streams.stream(track, request.headers.get("Range"))


@api.route('/api/tracks/<track_id>/download', methods=['GET'])
@api.route('/tracks/<track_id>/download', methods=['GET'])
def download_track(track_id):
    """Serve the whole file as an attachment under its original name."""
    track = _authorized_track(track_id)
    return _ctx().streams.download(track)


@api.app_errorhandler(StreamError)
def handle_stream_error(error: StreamError):
    response, status = error_response(error.status, error.code, error.public_message)
    if isinstance(error, RangeError) and error.size is not None:
        response.headers['Content-Range'] = f"{RANGE_UNIT} */{error.size}"
    if status >= 500:
        logger.error("Request %s %s failed: %s", request.method, request.path, error)
    return response, status


@api.app_errorhandler(404)
def handle_not_found(error):
    return error_response(404, "not_found", "Not found")


@api.app_errorhandler(405)
def handle_method_not_allowed(error):
    return error_response(405, "method_not_allowed", "Method not allowed")


@api.app_errorhandler(500)
def handle_internal_error(error):
    return error_response(500, "server_error", "Internal server error")


def create_app(config: ServerConfig, db: Optional[DatabaseManager] = None,
               storage: Optional[BlobStorageProvider] = None) -> Flask:
    """
    Build the Flask application.

    Args:
        config: Effective server configuration
        db: Database manager, built from ``config`` when omitted
        storage: Storage provider, built from ``config`` when omitted

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)

    if db is None:
        db = DatabaseManager(str(config.resolved_database_path))
    if storage is None:
        storage = StorageProviderFactory.create(config)

    app.extensions[EXTENSION_KEY] = AppContext(
        config=config,
        db=db,
        streams=StreamService(storage, config.chunk_policy),
    )

    # Players on another origin need Range in and Content-Range out
    CORS(
        app,
        origins=config.cors_origins,
        allow_headers=["Authorization", "Content-Type", "Range"],
        expose_headers=["Content-Range", "Content-Length", "Accept-Ranges"],
        supports_credentials=True,
    )
    app.register_blueprint(api)

    if not config.jwt_secret:
        logger.warning("JWT_SECRET is empty: every stream request will be rejected")
    logger.info("Streaming from %s storage, data dir %s",
                StorageProviderFactory.get_provider_name(config.storage_provider),
                config.resolved_data_dir)
    return app
