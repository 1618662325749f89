from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from ragruntime.domain.models.batch import BatchProgress

ProgressCallback = Callable[[BatchProgress], None]


@contextmanager
def rich_progress(
    total: int,
    *,
    description: str = "Embedding chunks",
    console: Console | None = None,
    chained: ProgressCallback | None = None,
) -> Iterator[ProgressCallback]:
    progress = Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("[red]{task.fields[failed]} failed"),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    )
    task_id = progress.add_task(description, total=total, failed=0)

    def on_progress(snapshot: BatchProgress) -> None:
        progress.update(task_id, completed=snapshot.completed, failed=snapshot.failed)
        if chained is not None:
            chained(snapshot)

    with progress:
        yield on_progress
