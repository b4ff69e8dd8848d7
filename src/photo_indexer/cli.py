"""Command line entrypoint: index a directory, serve the API, query the store."""

from __future__ import annotations

import json
from pathlib import Path

import typer

from photo_indexer.config import Settings, load_settings
from photo_indexer.errors import PhotoIndexerError
from photo_indexer.pipeline import STATE_FAILED, IndexingJob
from photo_indexer.search import create_searcher
from photo_indexer.stats import IndexingStats
from utils.logging import configure_logging, get_logger

LOGGER = get_logger(__name__)

app = typer.Typer(add_completion=False, help="Index a photo collection and search it by content hash and metadata.")

SETTINGS_OPTION = typer.Option(
    None,
    "--settings",
    dir_okay=False,
    help="Path to settings.yaml. Defaults to $PHOTO_INDEXER_SETTINGS or config/settings.yaml.",
)


def _load(settings_path: Path | None) -> Settings:
    settings = load_settings(settings_path)
    configure_logging(settings.logging.level)
    return settings


@app.command("index")
def index(
    root: Path | None = typer.Option(
        None,
        "--root",
        file_okay=False,
        dir_okay=True,
        exists=True,
        readable=True,
        help="Directory to scan. Defaults to scan.directory in settings.yaml.",
    ),
    full: bool = typer.Option(
        False,
        "--full",
        help="Re-extract metadata and thumbnails for content that is already indexed.",
    ),
    settings_path: Path | None = SETTINGS_OPTION,
) -> None:
    """Run one indexing job in the foreground and print its counters."""

    settings = _load(settings_path)
    searcher = create_searcher(settings)
    try:
        job = IndexingJob(settings, searcher, root=root, incremental=False if full else None)
        status = job.run()
    finally:
        searcher.close()

    typer.echo(str(IndexingStats(**status["stats"])))
    if status["state"] == STATE_FAILED:
        typer.echo(f"Indexing failed: {status['error']}", err=True)
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    no_index: bool = typer.Option(
        False,
        "--no-index",
        help="Serve the API without starting a background indexing job.",
    ),
    settings_path: Path | None = SETTINGS_OPTION,
) -> None:
    """Serve the HTTP API, indexing the configured directory in the background."""

    from photo_indexer.webui import create_app

    settings = _load(settings_path)
    searcher = create_searcher(settings)
    searcher.ensure_index_exists()

    job: IndexingJob | None = None
    if not no_index:
        job = IndexingJob(settings, searcher)
        job.start()

    flask_app = create_app(settings, searcher, job)
    LOGGER.info("webui_start", extra={"host": settings.web.host, "port": settings.web.port})
    try:
        flask_app.run(host=settings.web.host, port=settings.web.port, threaded=True)
    finally:
        searcher.close()


@app.command("search")
def search(
    query: str = typer.Argument("", help="Free-text query; empty lists everything."),
    settings_path: Path | None = SETTINGS_OPTION,
) -> None:
    """Print matching records as JSON lines."""

    settings = _load(settings_path)
    searcher = create_searcher(settings)
    try:
        for record in searcher.search_images(query):
            typer.echo(json.dumps(record.to_dict(), ensure_ascii=False))
    finally:
        searcher.close()


@app.command("status")
def status(settings_path: Path | None = SETTINGS_OPTION) -> None:
    """Print the number of indexed documents."""

    settings = _load(settings_path)
    searcher = create_searcher(settings)
    try:
        typer.echo(f"{searcher.count_images()} images indexed ({settings.search.engine})")
    finally:
        searcher.close()


def main() -> None:
    try:
        app()
    except PhotoIndexerError as exc:
        LOGGER.error("cli_error", extra={"error": str(exc)})
        typer.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()


__all__ = ["app", "main"]
