"""
main.py: command-line launcher for the adopt-a-cell data service.

Serve the published allocation and refresh it periodically:

    python main.py serve --source https://example.org/download-supporters

Run a single fetch/allocate/publish pass and exit:

    python main.py run-once --source https://example.org/download-supporters

Direct uvicorn usage (settings from CELLWALL_* environment variables):
    uvicorn cellwall.main:app
"""

from __future__ import annotations

from dataclasses import replace
from typing import Annotated, Optional

import typer
import uvicorn

from cellwall.main import create_app
from cellwall.services.fetch_service import FetchService
from cellwall.services.pipeline_service import PipelineService
from cellwall.utils.config import Settings, get_settings
from cellwall.utils.logger import configure_logging


cli = typer.Typer(add_completion=False, help="Adopt-a-cell pledge allocation service.")

SourceOption = Annotated[
    Optional[str],
    typer.Option("--source", help="A web URL for accessing the patron data."),
]
CleanRunOption = Annotated[
    bool,
    typer.Option("--clean-run", help="Clear the download cache before the first fetch."),
]


def _resolve_settings(source: Optional[str]) -> Settings:
    settings = get_settings()
    if source:
        settings = replace(settings, source_url=source)
    if not settings.source_url:
        typer.echo("ERROR: A URL must be provided with --source or CELLWALL_SOURCE_URL.", err=True)
        raise typer.Exit(code=2)
    return settings


@cli.command()
def serve(
    source: SourceOption = None,
    clean_run: CleanRunOption = False,
    host: Annotated[Optional[str], typer.Option(help="Bind address.")] = None,
    port: Annotated[Optional[int], typer.Option(help="Bind port.")] = None,
) -> None:
    """Serve /patron-data and refresh it every poll interval."""
    configure_logging()
    settings = _resolve_settings(source)
    if clean_run:
        FetchService(settings=settings).clear_cache()

    typer.echo("=" * 60)
    typer.echo(f"  {settings.app_name} {settings.app_version}")
    typer.echo(f"  Source   : {settings.source_url}")
    typer.echo(f"  Endpoint : http://{host or settings.host}:{port or settings.port}/patron-data")
    typer.echo(f"  Result   : {settings.result_path}")
    typer.echo("=" * 60)

    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )


@cli.command("run-once")
def run_once(
    source: SourceOption = None,
    clean_run: CleanRunOption = False,
    force: Annotated[bool, typer.Option(help="Publish even if the export is unchanged.")] = False,
) -> None:
    """Fetch, allocate and publish once."""
    configure_logging()
    settings = _resolve_settings(source)
    fetch_service = FetchService(settings=settings)
    if clean_run:
        fetch_service.clear_cache()

    result = PipelineService(settings=settings, fetch_service=fetch_service).run_once(force=force)
    if result is None:
        typer.echo("Export unchanged; nothing published.")
        return
    typer.echo(
        f"Published {len(result.cells)} cells ({result.joint_cell_count} joint), "
        f"remaining credit {result.remaining_credit:.4f}, "
        f"{len(result.pending_patrons)} pending patrons -> {settings.result_path}"
    )


if __name__ == "__main__":
    cli()
