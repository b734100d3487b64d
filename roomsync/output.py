"""Console output formatting for the CLI and sync engine."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Writes human-readable or JSON output to the terminal."""

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        """Initialize the formatter.

        Args:
            json_output: Emit machine-readable JSON instead of text
            quiet: Suppress informational messages
            console: Console for regular output (default: stdout)
            err_console: Console for warnings and errors (default: stderr)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)

    def print(self, message: str = "") -> None:
        """Print a plain line (suppressed in JSON mode)."""
        if not self.json_output:
            self.console.print(message, markup=False)

    def info(self, message: str) -> None:
        """Print an informational message."""
        if not self.quiet and not self.json_output:
            self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        """Print a success message."""
        if not self.quiet and not self.json_output:
            self.console.print(f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        """Print a warning to stderr."""
        self.err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        """Print an error to stderr."""
        self.err_console.print(f"[red]Error:[/red] {escape(message)}")

    def output_json(self, data: Any) -> None:
        """Write data as JSON to stdout."""
        self.console.print_json(json.dumps(data, default=str))

    def output_table(
        self,
        rows: list[dict[str, Any]],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Render rows as a table.

        Args:
            rows: Row dictionaries
            columns: Keys to display, in order
            headers: Optional display names for columns
        """
        headers = headers or {}
        table = Table(show_header=True, header_style="bold")
        for column in columns:
            table.add_column(headers.get(column, column))
        for row in rows:
            table.add_row(*("" if row.get(c) is None else str(row.get(c)) for c in columns))
        self.console.print(table)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a titled list of label/value pairs."""
        if self.json_output:
            return
        self.console.print(f"\n[bold]{escape(title)}[/bold]")
        width = max((len(label) for label, _ in items), default=0)
        for label, value in items:
            self.console.print(f"  {label.ljust(width)}  {value}", markup=False)

    @staticmethod
    def format_size(size_bytes: int) -> str:
        """Human-readable size."""
        return format_size(size_bytes)
