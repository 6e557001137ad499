"""Output formatting utilities for the CLI."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import questionary
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

from rdbrestore.cli.common.tui_style import QUESTIONARY_STYLE_CONFIRM
from rdbrestore.core.catalog import Catalog

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    def info(self, msg: str) -> None:
        """Print an info message."""
        console.print(f"[title]›[/] {msg}")

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        """Print a success message."""
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        """Print a warning message."""
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        """Print an error message."""
        console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        """Print a header message."""
        console.print(f"[title]{title}[/]")

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {v}")

    def confirm(self, message: str, *, default: bool = False) -> bool:
        """
        Ask the user for confirmation using a standardized Questionary prompt.

        Args:
            message: Confirmation question shown to the user.
            default: Default answer if the user just presses enter.

        Returns:
            True if the user confirms, False otherwise (including Ctrl-C).
        """
        console.print("[meta]Use y/n then Enter[/]")
        prompt = questionary.confirm(
            f"[rdbrestore] {message}",
            default=default,
            style=QUESTIONARY_STYLE_CONFIRM,
            qmark="✦",
            auto_enter=False,
        )
        return bool(prompt.ask())

    def catalog_table(self, catalog: Catalog, title: str = "Catalog") -> None:
        """Render the tables declared by the dump's metadata files."""
        t = Table(title=title, show_lines=False)
        t.add_column("Table", style="ok")
        t.add_column("Primary key", style="meta")
        t.add_column("Indexes", style="meta")

        for table in catalog.tables():
            indexes = ", ".join(i.name for i in table.indexes)
            t.add_row(table.full_name, table.primary_key, indexes)

        console.print(t)

    def units_table(self, units: Iterable[Any], title: str = "Data files") -> None:
        """
        Expects objects with .label and .path (like rdbrestore.core.models.RestoreUnit)
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Table", style="ok", no_wrap=True)
        t.add_column("File", style="meta")

        for u in units:
            t.add_row(u.label, escape(str(u.path)))

        console.print(t)

    def schema_results_table(
        self, results: Iterable[Any], title: str = "Schema"
    ) -> None:
        """Render schema request outcomes (one row per create/drop request)."""
        t = Table(title=title, show_lines=False)
        t.add_column("Operation", style="meta")
        t.add_column("Target", style="ok")
        t.add_column("Result")

        for r in results:
            if not r.ok:
                result = f"[err]FAIL[/] {escape(str(r.error))}"
            elif r.skipped:
                result = "[meta]SKIPPED[/]"
            else:
                result = "[ok]OK[/]"
            t.add_row(r.operation, r.target, result)

        console.print(t)

    def unit_results_table(
        self, results: Iterable[Any], title: str = "Restore results"
    ) -> None:
        """
        Expects objects with .unit .ok .records .batches .truncated .error_kind .error
        (like rdbrestore.core.models.UnitResult)
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Table", style="ok", no_wrap=True)
        t.add_column("Records", justify="right")
        t.add_column("Batches", justify="right", style="meta")
        t.add_column("Result")

        for r in results:
            if not r.ok:
                kind = r.error_kind.value if r.error_kind else "Error"
                result = f"[err]{kind}[/] {escape(str(r.error))}"
            elif r.truncated:
                result = "[warn]TRUNCATED[/]"
            else:
                result = "[ok]OK[/]"
            t.add_row(r.unit.label, str(r.records), str(r.batches), result)

        console.print(t)


out = Out()
