"""Periodic clustering runs."""

import logging
import threading
from typing import Any, Callable

from rich.console import Console

from .clustering.cluster import run_clustering
from .models import RunResult

console = Console()
logger = logging.getLogger(__name__)


class ClusteringScheduler:
    """Runs a clustering pass every `interval_minutes` until stopped."""

    def __init__(
        self,
        config: dict[str, Any],
        interval_minutes: float = 60,
        runner: Callable[[dict[str, Any]], RunResult] = run_clustering,
    ):
        self.config = config
        self.interval = interval_minutes * 60
        self.runner = runner
        self._stop = threading.Event()

    def run_once(self) -> RunResult | None:
        """Run one pass. Failures are reported and the schedule carries on."""
        try:
            result = self.runner(self.config)
        except Exception as e:
            console.print(f"  [red]✗ Clustering failed: {e}[/]")
            logger.exception(f"Scheduled clustering failed: {e}")
            return None
        console.print(
            f"  [green]✓ {result.events_processed} report(s) processed, "
            f"{result.clusters_created} cluster(s) created[/]"
        )
        return result

    def stop(self):
        self._stop.set()

    def run(self, max_runs: int | None = None):
        """Start the schedule (blocks until Ctrl+C, stop() or max_runs)."""
        console.print(f"[bold]Clustering every {self.interval / 60:g} minute(s)... (Ctrl+C to stop)[/]")
        runs = 0
        try:
            while not self._stop.is_set():
                self.run_once()
                runs += 1
                if max_runs is not None and runs >= max_runs:
                    break
                self._stop.wait(self.interval)
        except KeyboardInterrupt:
            console.print("\n[yellow]Stopping scheduler...[/]")
        console.print("[green]✓ Scheduler stopped.[/]")
