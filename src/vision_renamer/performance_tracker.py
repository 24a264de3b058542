"""Performance tracking and display utilities."""

import time
from contextlib import contextmanager
from typing import Generator, Optional

from rich.console import Console
from rich.table import Table

from .models import ModelPerformance, RenameOutcome


class PerformanceTracker:
    """Tracks timing and outcome counts for a batch."""

    def __init__(self, model_name: str):
        """
        Initialize performance tracker.

        Args:
            model_name: Name of the model being tracked
        """
        self.performance = ModelPerformance(model_name=model_name)

    @contextmanager
    def track_task(self) -> Generator[None, None, None]:
        """
        Context manager to time one task.

        Usage:
            with tracker.track_task():
                outcome = await orchestrator.rename_image(task)
        """
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self.performance.total_time += time.perf_counter() - start_time

    def record(self, outcome: RenameOutcome) -> None:
        """Count a finished task."""
        if not outcome.success:
            self.performance.error_count += 1
        elif outcome.unchanged:
            self.performance.unchanged_count += 1
        else:
            self.performance.success_count += 1

    def display_summary(self, console: Optional[Console] = None) -> None:
        """Display performance metrics in a formatted table."""
        console = console or Console()
        console.print("\n[bold]Performance Summary[/bold]")

        table = Table()
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="magenta")

        table.add_row("Model", self.performance.model_name)
        table.add_row("Success Rate", f"{self.performance.success_rate:.1%}")
        table.add_row("Renamed", str(self.performance.success_count))
        table.add_row("Unchanged", str(self.performance.unchanged_count))
        table.add_row("Errors", str(self.performance.error_count))
        table.add_row("Average Time/Image", f"{self.performance.avg_time_per_image:.2f}s")

        console.print(table)

    @property
    def stats(self) -> ModelPerformance:
        """Get the current performance statistics."""
        return self.performance
