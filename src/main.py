"""Main entry point for md-kanban.

Loads todo.md from the board folder, wires the background writer and the
file watcher into the board, then hands control to the CLI loop.
"""
from pathlib import Path
from typing import Optional
import logging

import click

from board import KanbanBoard
from cli import CLI
from config import Settings, parse_level
from logging_setup import setup_logging
from storage import BackgroundWriter, Storage
from watcher import FileWatcher

logger = logging.getLogger(__name__)


def build_app(settings: Settings) -> CLI:
    """Create the board, persistence and watcher for settings.folder."""
    folder = settings.folder
    writer = BackgroundWriter(folder)
    board = KanbanBoard(
        Storage.load_board(folder),
        persist=writer.submit,
        wip_limit=settings.wip_limit,
        intake_lane_name=settings.intake_lane,
    )
    watcher: Optional[FileWatcher] = None
    if settings.watch:
        window_s = settings.reload_debounce_ms / 1000
        watcher = FileWatcher(
            Storage.primary_path(folder),
            is_self_write=lambda: writer.wrote_recently(window_s),
            debounce_ms=settings.reload_debounce_ms,
        )
    return CLI(board, folder, writer=writer, watcher=watcher, alt_screen=settings.alt_screen)


@click.command()
@click.option('--folder', type=click.Path(file_okay=False, path_type=Path), default=None,
              help='Folder containing todo.md (default: KANBAN_FOLDER or current directory).')
@click.option('--wip-limit/--no-wip-limit', default=None,
              help='Keep at most one task in Doing by parking the previous one in Pending.')
@click.option('--watch/--no-watch', default=None, help='Reload when todo.md is edited elsewhere.')
@click.option('--log-level', default=None, help='Console log level (e.g. INFO, DEBUG).')
def main(folder: Optional[Path], wip_limit: Optional[bool], watch: Optional[bool],
         log_level: Optional[str]) -> None:
    settings = Settings.load()
    if folder is not None:
        settings.folder = folder
    if wip_limit is not None:
        settings.wip_limit = wip_limit
    if watch is not None:
        settings.watch = watch
    if log_level:
        settings.log_level = parse_level(log_level, settings.log_level)

    log_file = setup_logging(log_dir=settings.log_dir, console_level=settings.log_level)
    logger.info("Opening board in %s (log: %s)", settings.folder, log_file)
    settings.folder.mkdir(parents=True, exist_ok=True)
    try:
        app = build_app(settings)
    except (OSError, UnicodeDecodeError) as e:
        raise click.ClickException(f"Cannot open {settings.folder}: {e}")
    if app.watcher is not None:
        app.watcher.start()
    app.run()


if __name__ == "__main__":
    main()
