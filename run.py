"""Entry-point for the Study Desk application."""

from __future__ import annotations

import logging
import threading
import time
import webbrowser
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from studydesk.bootstrap import initialize_app
from studydesk.logging_utils import build_handlers, configure_logging
from studydesk.services.catalog import count_by_category, scan_materials
from studydesk.services.state import StateStore
from studydesk.services.storage import ProgressRepository
from studydesk.ui.console import ConsoleUI
from studydesk.ui.modern import ModernUI
from studydesk.web import create_app


LOGGER = logging.getLogger("studydesk.cli")


cli = typer.Typer(add_completion=False, help="Study Desk management commands")


def _prepare_logging(storage_root: Path) -> None:
    configure_logging(handlers=build_handlers(storage_root))


class UIStyle(str, Enum):
    MODERN = "modern"
    CONSOLE = "console"


style_option = typer.Option(
    UIStyle.MODERN,
    "--style",
    "-s",
    help="Select the queue presentation style.",
    show_default=True,
)

today_option = typer.Option(
    None,
    "--today",
    min=0,
    max=6,
    help="Weekday to rank against (0=Sunday … 6=Saturday); defaults to today.",
)


@cli.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Launch the web server when no explicit command is provided."""

    if ctx.invoked_subcommand is None:
        ctx.invoke(serve, host=DEFAULT_HOST, port=DEFAULT_PORT, root_path=None, open_browser=True)


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def _normalize_root_path(root_path: Optional[str]) -> str:
    if root_path is None:
        return ""
    normalized = root_path.strip()
    if not normalized:
        return ""
    if not normalized.startswith("/"):
        normalized = f"/{normalized}"
    return normalized.rstrip("/")


def _materials_root(config) -> Path:
    state = StateStore(config).load()
    if state.base_path:
        return Path(state.base_path).expanduser()
    return config.materials_root


@cli.command()
def serve(
    host: str = typer.Option(DEFAULT_HOST, help="Host interface for the web server"),
    port: int = typer.Option(DEFAULT_PORT, help="Port for the web server"),
    root_path: Optional[str] = typer.Option(
        None,
        help="Prefix the application expects when mounted behind a proxy",
        envvar="STUDYDESK_ROOT_PATH",
    ),
    open_browser: bool = typer.Option(True, "--open-browser/--no-browser", help="Open a browser tab"),
) -> None:
    """Run the FastAPI-powered web experience."""

    app_config = initialize_app()
    _prepare_logging(app_config.storage_root)

    repository = ProgressRepository(app_config)
    normalized_root = _normalize_root_path(root_path)
    app = create_app(repository, config=app_config, root_path=normalized_root)

    server_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_config=None,
        root_path=normalized_root,
    )
    server = uvicorn.Server(server_config)
    app.state.server = server

    browser_host = host
    if not browser_host or browser_host in {"0.0.0.0", "::"}:
        browser_host = "127.0.0.1"
    url_path = f"{normalized_root}/" if normalized_root else "/"
    url = f"http://{browser_host}:{port}{url_path}"

    def _open_browser_later() -> None:
        time.sleep(1.0)
        try:
            webbrowser.open(url, new=2, autoraise=True)
        except webbrowser.Error:
            LOGGER.debug("Could not open a browser for %s", url)

    if open_browser:
        threading.Thread(target=_open_browser_later, daemon=True).start()

    server.run()


@cli.command()
def queue(style: UIStyle = style_option, today: Optional[int] = today_option) -> None:
    """Render the pending study queue using the chosen UI style."""

    config = initialize_app()
    _prepare_logging(config.storage_root)

    repository = ProgressRepository(config)
    if style is UIStyle.MODERN:
        ui = ModernUI(config, repository, today=today)
    else:
        ui = ConsoleUI(config, repository, today=today)
    ui.run()


@cli.command()
def scan() -> None:
    """Summarise the PDFs found under the materials root."""

    config = initialize_app()
    _prepare_logging(config.storage_root)

    root = _materials_root(config)
    items = scan_materials(root, StateStore(config).load().metadata)
    typer.echo(f"Materials root: {root}")
    if not items:
        typer.echo("No PDFs found.")
        return

    subjects = sorted({item.subject for item in items})
    for subject in subjects:
        subject_items = [item for item in items if item.subject == subject]
        weeks = sorted({item.week for item in subject_items})
        pages = sum(item.pages for item in subject_items)
        typer.echo(
            f"  {subject}: {len(subject_items)} PDF(s), {pages} page(s), "
            f"weeks {', '.join(str(week) for week in weeks)}"
        )
    typer.echo(f"Total: {len(items)} PDF(s) across {len(subjects)} subject(s)")


@cli.command("sync-totals")
def sync_totals() -> None:
    """Store the number of classified PDFs per subject and category."""

    config = initialize_app()
    _prepare_logging(config.storage_root)

    root = _materials_root(config)
    counts = count_by_category(scan_materials(root, StateStore(config).load().metadata))
    records = ProgressRepository(config).sync_totals(counts)
    if not records:
        typer.echo("No classified PDFs found; nothing to synchronise.")
        return
    for record in records:
        typer.echo(
            f"  {record.subject_name}/{record.table_type}: "
            f"{record.current_progress}/{record.total_pdfs}"
        )
    typer.echo("Totals synchronised.")


if __name__ == "__main__":
    cli()
