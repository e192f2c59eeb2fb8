from dataclasses import dataclass, field
from typing import Sequence

from lab_ui.tui.models import TableModel
from lab_ui.tui.protocols import Presenter, PresenterSink


@dataclass
class RecordedTable:
    model: TableModel


@dataclass
class HeadlessUI:
    """UI that records output instead of printing it (CI and tests)."""

    recorded_tables: list[RecordedTable] = field(default_factory=list)
    recorded_messages: list[str] = field(default_factory=list)

    # Queued answers for prompts; None means "no answer"
    next_choices: list[str | None] = field(default_factory=list)

    def __post_init__(self):
        self.present = Presenter(_HeadlessPresenterSink(self))
        self.tables = _HeadlessTablePresenter(self)
        self.prompt = _HeadlessPrompt(self)

    def messages(self, level: str) -> list[str]:
        prefix = f"{level.upper()}: "
        return [m[len(prefix):] for m in self.recorded_messages if m.startswith(prefix)]


class _HeadlessTablePresenter:
    def __init__(self, ui: HeadlessUI):
        self._ui = ui

    def show(self, table: TableModel) -> None:
        self._ui.recorded_tables.append(RecordedTable(table))


class _HeadlessPresenterSink(PresenterSink):
    def __init__(self, ui: HeadlessUI) -> None:
        self._ui = ui

    def emit(self, level: str, message: str) -> None:
        self._ui.recorded_messages.append(f"{level.upper()}: {message}")

    def emit_rule(self, title: str) -> None:
        self._ui.recorded_messages.append(f"RULE: {title}")


class _HeadlessPrompt:
    def __init__(self, ui: HeadlessUI):
        self._ui = ui

    def choose(self, prompt: str, choices: Sequence[str]) -> str | None:
        self._ui.recorded_messages.append(f"PROMPT: {prompt}")
        if not self._ui.next_choices:
            return None
        return self._ui.next_choices.pop(0)
