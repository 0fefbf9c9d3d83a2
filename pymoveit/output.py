"""Console output helpers for the command line."""

from typing import Optional

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Writes status messages and tables to the terminal."""

    def __init__(self, quiet: bool = False, console: Optional[Console] = None):
        self.quiet = quiet
        self.console = console or Console()
        self.err_console = Console(stderr=True)

    def print(self, message: str = "") -> None:
        if not self.quiet:
            self.console.print(message)

    def info(self, message: str) -> None:
        if not self.quiet:
            self.console.print(f"[cyan]{message}[/cyan]")

    def success(self, message: str) -> None:
        if not self.quiet:
            self.console.print(f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        self.err_console.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]Error:[/red] {message}")

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two column key/value table."""
        if self.quiet:
            return
        table = Table(title=title, show_header=False)
        table.add_column("Key", style="bold")
        table.add_column("Value")
        for key, value in items:
            table.add_row(key, value)
        self.console.print(table)

    def print_files(self, files: dict[str, int]) -> None:
        """Print tracked remote files as a table sorted by name."""
        table = Table(title=f"{len(files)} remote file(s)")
        table.add_column("Name")
        table.add_column("ID", justify="right")
        for name in sorted(files):
            table.add_row(name, str(files[name]))
        self.console.print(table)
