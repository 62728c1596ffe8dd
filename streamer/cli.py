"""
Command-line interface for the CrateDrop streaming service.

Runs the HTTP server and checks stored track sizes against storage.
"""

import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from shared.config import ServerConfig
from shared.constants import SERVICE_NAME, SERVICE_VERSION
from shared.database import DatabaseManager
from shared.errors import SourceError
from storage.provider_factory import StorageProviderFactory

console = Console()
logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO", debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _load_config(config_file, env_file) -> ServerConfig:
    try:
        return ServerConfig.load(config_file=config_file, env_file=env_file)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration: {e}")


@click.group()
@click.version_option(version=SERVICE_VERSION, prog_name=SERVICE_NAME)
def cli():
    """
    CrateDrop audio streaming service.

    Serves uploaded tracks in bounded byte ranges from local disk or
    S3 compatible storage (Cloudflare R2 / Backblaze B2 / AWS S3).
    """
    pass


@cli.command()
@click.option('--host', default=None, help='Interface to bind (overrides HOST)')
@click.option('--port', default=None, type=int, help='Port to listen on (overrides PORT)')
@click.option('--env-file', default='.env', show_default=True, help='dotenv file to read')
@click.option('--config', 'config_file', type=click.Path(exists=True, dir_okay=False),
              help='JSON config file')
@click.option('--debug/--no-debug', default=False, help='Run in debug mode')
def serve(host, port, env_file, config_file, debug):
    """Run the streaming HTTP server."""
    from shared.api import create_app

    config = _load_config(config_file, env_file)
    configure_logging(config.log_level, debug)

    if config.is_production and not config.jwt_secret:
        raise click.ClickException("JWT_SECRET must be set in production")

    try:
        app = create_app(config)
    except ValueError as e:
        raise click.ClickException(str(e))

    host = host or config.host
    port = port or config.port
    console.print(f"[bold cyan]{SERVICE_NAME}[/bold cyan] {SERVICE_VERSION} on http://{host}:{port}")
    app.run(host=host, port=port, debug=debug, threaded=True, use_reloader=False)


@cli.command()
@click.option('--fix', is_flag=True, help='Write live sizes back to the database')
@click.option('--env-file', default='.env', show_default=True, help='dotenv file to read')
@click.option('--config', 'config_file', type=click.Path(exists=True, dir_okay=False),
              help='JSON config file')
def verify(fix, env_file, config_file):
    """
    Compare each track's recorded size with the size in storage.

    Exits with status 1 if a blob is missing or a mismatch was left unfixed.
    """
    config = _load_config(config_file, env_file)
    configure_logging(config.log_level)

    try:
        storage = StorageProviderFactory.create(config)
    except ValueError as e:
        raise click.ClickException(str(e))
    db = DatabaseManager(str(config.resolved_database_path))

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Track", style="cyan")
    table.add_column("File")
    table.add_column("Stored", justify="right")
    table.add_column("Live", justify="right")
    table.add_column("Status")

    checked = problems = fixed = 0
    for track in db.iter_tracks():
        checked += 1
        try:
            handle, info = storage.open(track.file_path)
        except SourceError as e:
            problems += 1
            logger.debug("Open failed for %s: %s", track.file_path, e.detail)
            table.add_row(track.id, track.file_path, str(track.size_bytes), "-", "[red]missing[/red]")
            continue
        handle.close()

        if info.size == track.size_bytes:
            table.add_row(track.id, track.file_path, str(track.size_bytes), str(info.size), "[green]ok[/green]")
        elif fix and db.update_track_size(track.id, info.size):
            fixed += 1
            table.add_row(track.id, track.file_path, str(track.size_bytes), str(info.size), "[yellow]fixed[/yellow]")
        else:
            problems += 1
            table.add_row(track.id, track.file_path, str(track.size_bytes), str(info.size), "[red]mismatch[/red]")

    if checked:
        console.print(table)
    console.print(f"Checked {checked} track(s): {fixed} fixed, {problems} problem(s)")
    if problems:
        sys.exit(1)
