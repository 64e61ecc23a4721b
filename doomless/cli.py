"""
doomless CLI.

Commands:
    doomless init                         Provision the local model
    doomless process [TOPIC...]           Extract facts and quizzes for topics
    doomless extract FILE --topic T       Extract facts from an ad-hoc text file
    doomless facts TOPIC                  List stored facts
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from doomless.ai.errors import DoomlessError
from doomless.ai.events import ProgressEvent, ProgressLog
from doomless.ai.provisioning import ModelCandidate
from doomless.config import Settings, get_settings
from doomless.models import FactSource
from doomless.service import DoomlessService, build_service

app = typer.Typer(
    name="doomless",
    help="Offline fact extraction and quiz generation",
    no_args_is_help=True,
)

console = Console()

T = TypeVar("T")


def configure_logging(settings: Settings) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention=5)


def _run(work: Callable[[DoomlessService], Awaitable[T]], settings: Settings | None = None) -> T:
    """Build a service, run ``work`` with progress rendering, always shut down."""
    settings = settings or get_settings()
    progress = ProgressLog(maxlen=settings.progress_log_size)

    async def runner() -> T:
        service = build_service(settings)
        progress.attach(service.bus)
        try:
            with console.status(progress.status) as status:

                def render(event: ProgressEvent) -> None:
                    status.update(progress.status)

                unsubscribe = service.subscribe_progress(render)
                try:
                    return await work(service)
                finally:
                    unsubscribe()
        finally:
            progress.detach()
            await service.shutdown()

    try:
        return asyncio.run(runner())
    except DoomlessError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e


@app.command("init")
def init_models():
    """Provision the local completion model (download if needed)."""

    # Read provisioning state before _run shuts the service down
    async def work(service: DoomlessService) -> tuple[bool, ModelCandidate | None]:
        await service.initialize()
        return service.provisioning.is_degraded, service.provisioning.current_model

    degraded, model = _run(work)
    if degraded:
        console.print("[yellow]No local runtime found; sentence fallback mode only.[/yellow]")
    elif model is not None:
        console.print(f"[green]Model ready:[/green] {model.model_id}")


@app.command("process")
def process_topics(
    topics: list[str] = typer.Argument(None, help="Topics to process (default: configured topics)"),
    degraded: bool = typer.Option(False, "--degraded", help="Continue with sentence fallback if no model loads"),
):
    """
    Extract facts and quizzes from topic files.

    Examples:
        doomless process
        doomless process animals history --degraded
    """

    async def work(service: DoomlessService):
        await service.prepare_storage()
        return await service.process_default_topics(topics or None, allow_degraded=degraded)

    results = _run(work)

    table = Table(title="Topic processing")
    table.add_column("Topic", style="cyan")
    table.add_column("Facts", justify="right", style="green")
    table.add_column("Quizzes", justify="right", style="green")
    table.add_column("Status")

    for topic, result in results.items():
        if result is None:
            table.add_row(topic, "-", "-", "[dim]skipped or failed[/dim]")
        else:
            table.add_row(topic, str(result.facts_saved), str(result.quizzes_saved), "[green]done[/green]")

    console.print(table)


@app.command("extract")
def extract_file(
    source: Path = typer.Argument(..., help="Text file to extract facts from"),
    topic: str = typer.Option(..., "--topic", "-t", help="Topic the facts belong to"),
    save: bool = typer.Option(False, "--save", help="Persist facts as user uploads"),
    degraded: bool = typer.Option(False, "--degraded", help="Continue with sentence fallback if no model loads"),
):
    """
    Extract facts from an ad-hoc text file.

    Examples:
        doomless extract notes.txt --topic history
        doomless extract notes.txt -t history --save --degraded
    """
    if not source.is_file():
        console.print(f"[red]Error: Source not found: {source}[/red]")
        raise typer.Exit(1)

    text = source.read_text(encoding="utf-8", errors="replace")

    async def work(service: DoomlessService):
        await service.initialize(allow_degraded=degraded)
        if save:
            return await service.ingest_text(text, topic, FactSource.USER_UPLOAD, allow_degraded=degraded)
        return await service.extract_facts(text, topic)

    facts = _run(work)

    table = Table(title=f"{len(facts)} facts for {topic}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Fact")
    table.add_column("Source", style="cyan")
    for index, fact in enumerate(facts, 1):
        table.add_row(str(index), fact.content, fact.source.value)
    console.print(table)


@app.command("facts")
def list_facts(
    topic: str = typer.Argument(..., help="Topic to list"),
    limit: int = typer.Option(20, "--limit", "-l", help="Max facts to show"),
    quizzes: bool = typer.Option(False, "--quizzes", help="Show quiz facts with their options"),
):
    """List stored facts for a topic, newest first."""

    async def work(service: DoomlessService):
        await service.prepare_storage()
        return await service.store.get_facts(topic=topic, limit=limit)

    facts = _run(work)
    if not quizzes:
        facts = [fact for fact in facts if not fact.is_quiz]

    if not facts:
        console.print(f"[yellow]No facts stored for {topic}.[/yellow]")
        return

    for fact in facts:
        console.print(f"[dim]{fact.id:>5}[/dim] {fact.content}")
        if fact.is_quiz and fact.quiz_data:
            for index, option in enumerate(fact.quiz_data.options):
                marker = "[green]*[/green]" if index == fact.quiz_data.correct_index else " "
                console.print(f"        {marker} {option}")


@app.callback()
def main():
    """doomless: offline fact extraction and quiz generation."""
    configure_logging(get_settings())


def run() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    run()
