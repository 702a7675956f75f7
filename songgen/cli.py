"""CLI entry-point: lyrics, one-shot generation, task status, API server."""

import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from songgen.config import get_settings
from songgen.errors import SongGenError
from songgen.identity import Identity
from songgen.provider.errors import ProviderError, map_provider_error
from songgen.schemas.generation import GenerateSongRequest, build_status_payload
from songgen.services import build_lyricist, build_services
from songgen.tasks.store import get_task_store

app = typer.Typer(help="Personalized song generation")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@app.callback()
def main(
    log_level: str = typer.Option("INFO", "--log-level", help="DEBUG | INFO | WARNING | ERROR"),
):
    """Personalized song generation."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}", param_hint="--log-level")
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


def _load_request(briefing: str, **overrides) -> GenerateSongRequest:
    data = json.loads(Path(briefing).read_text(encoding="utf-8"))
    data.update({k: v for k, v in overrides.items() if v is not None})
    return GenerateSongRequest.model_validate(data)


@app.command()
def lyrics(
    briefing: str = typer.Argument(..., help="Path to a JSON song briefing (camelCase keys)"),
    language: str = typer.Option(None, help="Lyrics language: en-US | pt-BR"),
):
    """Write a title and lyrics for a briefing, without generating music."""
    console = Console()
    settings = get_settings()
    lyricist = build_lyricist(settings)
    if lyricist is None:
        console.print("[red]Error: no LLM API key configured[/red]")
        raise typer.Exit(1)
    request = _load_request(briefing, language=language)
    try:
        title, text = asyncio.run(lyricist.write_title_and_lyrics(request))
    except SongGenError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)
    console.print(f"[bold]{title}[/bold]\n")
    console.print(text)


@app.command()
def generate(
    briefing: str = typer.Argument(..., help="Path to a JSON song briefing (camelCase keys)"),
    user_id: str = typer.Option(None, help="Authenticated user id"),
    guest_id: str = typer.Option("cli", help="Guest id used when no user id is given"),
):
    """Generate a song and wait until the task reaches a terminal status."""
    console = Console()
    request = _load_request(briefing)
    identity = Identity(user_id=user_id, guest_id=None if user_id else guest_id)

    async def _run():
        services = build_services()
        try:
            result = await services.orchestrator.generate(request, identity)
            if request.lyrics_only:
                return result, None
            console.print(f"Task [cyan]{result.task_id}[/cyan] started, polling...")
            task = await services.supervisor.join(result.task_id)
            return result, task
        finally:
            await services.aclose()

    try:
        result, task = asyncio.run(_run())
    except SongGenError as e:
        console.print(f"[red]Error ({e.status_code}): {e.message}[/red]")
        raise typer.Exit(1)
    except ProviderError as e:
        status, message = map_provider_error(e)
        console.print(f"[red]Error ({status}): {message}[/red]")
        raise typer.Exit(1)

    if task is None:
        console.print_json(result.model_dump_json(by_alias=True))
        return
    _print_task(console, build_status_payload(task).to_json())
    if task.status.value == "FAILED":
        raise typer.Exit(1)


@app.command()
def status(task_id: str = typer.Argument(..., help="Task id returned by generate")):
    """Show a task from the registry (needs SONGGEN_TASK_BACKEND=file across processes)."""
    console = Console()
    task = get_task_store().get(task_id)
    if task is None:
        console.print(f"[red]Task not found: {task_id}[/red]")
        raise typer.Exit(1)
    _print_task(console, build_status_payload(task).to_json())


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(None, help="Port (default from PORT or 3003)"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes"),
):
    """Run the HTTP API."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("backend.main:app", host=host, port=port or settings.port, reload=reload)


def _print_task(console: Console, payload: dict) -> None:
    console.print(f"Task [cyan]{payload['taskId']}[/cyan]: [bold]{payload['status']}[/bold] "
                  f"({payload['completedClips']}/{payload['totalExpected']} clips, "
                  f"{payload['elapsedTime']})")
    if payload.get("error"):
        console.print(f"[red]{payload['error']}[/red]")
    if payload["audioClips"]:
        table = Table("Id", "Title", "Audio URL")
        for clip in payload["audioClips"]:
            table.add_row(clip["id"], clip["title"], clip["audio_url"])
        console.print(table)


if __name__ == "__main__":
    app()
