"""Command-line interface for vision-renamer."""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from .config import get_settings
from .file_renamer import FileRenamer
from .logging_setup import setup_logging
from .models import BatchSummary, ImageTask, ModelDescriptor, ProcessingStatus, StatusUpdate
from .performance_tracker import PerformanceTracker
from .renamer_service import (
    BatchObserver,
    BatchPreconditionError,
    BatchRunner,
    RenameOrchestrator,
    prepare_batch,
)
from .vision_client import VisionClient, VisionClientError

console = Console()
app = typer.Typer(
    name="vision-renamer",
    help="Rename images with names suggested by a local vision model"
)

STATUS_ICONS = {
    ProcessingStatus.SUCCESS: "[green]✔[/green]",
    ProcessingStatus.SKIPPED: "[yellow]–[/yellow]",
    ProcessingStatus.ERROR: "[red]✘[/red]",
}


class ConsoleObserver(BatchObserver):
    """Prints one line per finished image and drives a progress bar."""

    def __init__(self, progress: Progress, total: int):
        self.progress = progress
        self.task_id = progress.add_task("[green]Renaming images", total=total)

    def on_status(self, update: StatusUpdate) -> None:
        if update.status is ProcessingStatus.PROCESSING:
            self.progress.update(self.task_id, description=f"[green]{update.old_name}")
            return
        if not update.status.is_terminal:
            return

        icon = STATUS_ICONS[update.status]
        if update.status is ProcessingStatus.SUCCESS:
            line = f"{icon} {escape(update.old_name)} → [bold green]{escape(update.new_name or '')}[/bold green]"
        elif update.status is ProcessingStatus.SKIPPED:
            line = f"{icon} {escape(update.old_name)} [dim](unchanged)[/dim]"
        else:
            line = f"{icon} {escape(update.old_name)}: [red]{escape(update.error or 'Failed')}[/red]"
        self.progress.console.print(line)
        self.progress.advance(self.task_id)

    def on_complete(self, summary: BatchSummary) -> None:
        self.progress.update(self.task_id, description="[green]Done")


def expand_paths(paths: List[Path]) -> List[Path]:
    """Resolve paths, replacing directories with the images directly inside them."""
    expanded: List[Path] = []
    for path in paths:
        path = path.expanduser().resolve()
        if path.is_dir():
            expanded.extend(FileRenamer.find_images(path))
        else:
            expanded.append(path)
    return expanded


def display_models(models: List[ModelDescriptor]) -> None:
    table = Table(title="Available Models")
    table.add_column("#", style="dim")
    table.add_column("Model", style="cyan")
    table.add_column("Owned By", style="magenta")
    for number, model in enumerate(models, start=1):
        table.add_row(str(number), model.id, model.owned_by)
    console.print(table)


def choose_model(models: List[ModelDescriptor]) -> str:
    """Prompt for a model, by list number or id; defaults to the first one."""
    display_models(models)
    answer = typer.prompt("Vision model", default=models[0].id).strip()
    if answer.isdigit() and 1 <= int(answer) <= len(models):
        return models[int(answer) - 1].id
    return answer


async def run_batch(client: VisionClient, model: str, plan_tasks: List[ImageTask]) -> BatchSummary:
    """Run the batch with a live progress display."""
    tracker = PerformanceTracker(model)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("•"),
        TimeElapsedColumn(),
        console=console
    ) as progress:
        observer = ConsoleObserver(progress, len(plan_tasks))
        runner = BatchRunner(RenameOrchestrator(client, model), observer=observer, tracker=tracker)
        summary = await runner.run(plan_tasks)

    console.print(f"\n[bold]Renamed {summary.success_count} of {summary.total} images[/bold]")
    tracker.display_summary(console)
    return summary


@app.command()
def main(
    paths: Optional[List[Path]] = typer.Argument(None, help="Image files or directories of images"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model id to use (prompted for when omitted)"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Model server URL (default: http://localhost:1234)"),
    check: bool = typer.Option(False, "--check", help="Only check that the model server is reachable"),
    list_models: bool = typer.Option(False, "--list-models", help="List the models the server offers and exit"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Rename images using names suggested by a local vision model."""
    settings = get_settings(base_url=base_url, log_level="DEBUG" if verbose else None)
    setup_logging(settings.log_level)

    with VisionClient(settings.base_url, settings.probe_timeout, settings.request_timeout) as client:
        if check:
            if client.check_connection():
                console.print(f"[green]Model server reachable at {client.base_url}[/green]")
                return
            console.print(f"[red]Cannot connect to the model server at {client.base_url}[/red]")
            raise typer.Exit(1)

        try:
            if list_models:
                display_models(client.list_models())
                return

            plan = prepare_batch(client, expand_paths(paths or []))
        except (BatchPreconditionError, VisionClientError) as e:
            console.print(f"[bold red]Error[/bold red]\n\n{escape(str(e))}")
            raise typer.Exit(1)

        console.print(f"[blue]{len(plan.tasks)} image{'' if len(plan.tasks) == 1 else 's'} selected[/blue]")
        selected = model or choose_model(plan.models)
        console.print(f"[blue]Using model: {selected}[/blue]")

        asyncio.run(run_batch(client, selected, plan.tasks))


if __name__ == "__main__":
    app()
