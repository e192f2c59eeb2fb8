from typing import Sequence

import typer
from rich.console import Console
from rich.rule import Rule
from rich.table import Table

from lab_ui.tui.models import TableModel
from lab_ui.tui.protocols import Presenter, PresenterSink

_LEVEL_TEMPLATES = {
    "info": "[blue]ℹ[/blue] {message}",
    "warning": "[yellow]⚠ {message}[/yellow]",
    "error": "[red]✖ {message}[/red]",
    "success": "[green]✔ {message}[/green]",
}


class _RichPresenterSink(PresenterSink):
    def __init__(self, console: Console) -> None:
        self._console = console

    def emit(self, level: str, message: str) -> None:
        template = _LEVEL_TEMPLATES.get(level, "{message}")
        self._console.print(template.format(message=message))

    def emit_rule(self, title: str) -> None:
        self._console.print(Rule(title))


class RichTablePresenter:
    def __init__(self, console: Console) -> None:
        self._console = console

    def show(self, table: TableModel) -> None:
        rich_table = Table(title=table.title, show_lines=True, header_style="bold cyan")
        for column in table.columns:
            rich_table.add_column(column)
        for row in table.rows:
            rich_table.add_row(*row)
        self._console.print(rich_table)


class TyperPrompt:
    def choose(self, prompt: str, choices: Sequence[str]) -> str | None:
        return typer.prompt(f"{prompt} [{'/'.join(choices)}]")


class TUI:
    """Rich-backed console UI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self.present = Presenter(_RichPresenterSink(self.console))
        self.tables = RichTablePresenter(self.console)
        self.prompt = TyperPrompt()
