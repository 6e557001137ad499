"""Progress formatting utilities for the CLI."""

from __future__ import annotations

import threading
from typing import Sequence

from rich.console import Group
from rich.live import Live
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from rdbrestore.cli.common.output import console
from rdbrestore.core.models import RestoreUnit, UnitResult

_MAX_LABEL_WIDTH = 56


def _truncate(text: str, max_len: int) -> str:
    """Return text capped at max_len characters using an ASCII ellipsis."""
    if max_len <= 3 or len(text) <= max_len:
        return text[:max_len]
    return f"{text[: max_len - 3]}..."


def _display_unit_label(unit: RestoreUnit, *, label_width: int) -> str:
    """Render a unit label (`db.table`) padded so the record column lines up."""
    return _truncate(unit.label, _MAX_LABEL_WIDTH).ljust(label_width)


def _result_label(result: UnitResult) -> tuple[str, str]:
    """Return (status text, style) for a finished unit."""
    if not result.ok:
        kind = result.error_kind.value if result.error_kind else "FAILED"
        return kind, "red"
    if result.truncated:
        return "TRUNCATED", "yellow"
    return "DONE", "green"


class RestoreProgress:
    """
    Live progress for a restore run. Shows:
      - an overall progress bar (x/y units finished + failures)
      - per-unit spinner rows with records written (stops per unit when finished)

    Implements the core RestoreListener protocol; events arrive from worker
    threads.
    """

    def __init__(self, units: Sequence[RestoreUnit]) -> None:
        self._lock = threading.Lock()
        self._failures = 0
        label_width = max(
            (len(_truncate(u.label, _MAX_LABEL_WIDTH)) for u in units), default=0
        )

        # Overall bar (no per-unit fields here)
        self.overall = Progress(
            TextColumn("[bold]Overall[/]"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("failures=[bold red]{task.fields[failures]}[/]"),
            TimeElapsedColumn(),
            console=console,
        )

        # Per-unit rows
        self.per_unit = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.fields[label]}[/]"),
            TextColumn("records={task.fields[records]}"),
            TextColumn(
                "status=[{task.fields[style]}]{task.fields[status]}[/{task.fields[style]}]"
            ),
            TimeElapsedColumn(),
            console=console,
        )

        self._overall_task = self.overall.add_task(
            "overall", total=max(len(units), 1), failures=0
        )
        self._records: dict[RestoreUnit, int] = {}
        self._task_ids: dict[RestoreUnit, TaskID] = {}
        for unit in units:
            self._records[unit] = 0
            self._task_ids[unit] = self.per_unit.add_task(
                "",
                total=1,  # finite => elapsed stops when completed
                start=False,
                label=_display_unit_label(unit, label_width=label_width),
                records=0,
                status="PENDING",
                style="dim",
            )

        self._live = Live(
            Group(self.overall, self.per_unit),
            console=console,
            refresh_per_second=10,
            transient=True,
        )

    def __enter__(self) -> RestoreProgress:
        self._live.__enter__()
        return self

    def __exit__(self, *exc_info) -> None:
        self._live.__exit__(*exc_info)

    @property
    def failures(self) -> int:
        return self._failures

    def unit_started(self, unit: RestoreUnit) -> None:
        task_id = self._task_ids[unit]
        self.per_unit.start_task(task_id)
        self.per_unit.update(task_id, status="RUNNING", style="yellow")

    def batch_written(self, unit: RestoreUnit, records: int) -> None:
        with self._lock:
            self._records[unit] += records
            total = self._records[unit]
        self.per_unit.update(self._task_ids[unit], records=total)

    def unit_finished(self, result: UnitResult) -> None:
        status, style = _result_label(result)
        self.per_unit.update(
            self._task_ids[result.unit],
            records=result.records,
            status=status,
            style=style,
            completed=1,  # stops spinner + freezes elapsed
        )
        with self._lock:
            if not result.ok:
                self._failures += 1
            failures = self._failures
        self.overall.update(self._overall_task, failures=failures)
        self.overall.advance(self._overall_task, 1)
