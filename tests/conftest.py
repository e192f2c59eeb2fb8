from collections import defaultdict
from pathlib import Path
from typing import Iterable

import pytest
from rich.console import Console
from rich.table import Table

from lab_provisioner.api import LabSettings
from lab_provisioner.tools.command import CommandResult, CommandRunner

SAMPLE_VAGRANTFILE = Path(__file__).resolve().parents[1] / "lab" / "Vagrant" / "Vagrantfile"


class FakeRunner(CommandRunner):
    """CommandRunner double.

    ``available`` lists executables ``which`` can resolve. ``responses`` maps
    the argument tuple (without the executable) to an exit code, a stdout
    string, a CommandResult, or a list of those consumed in order.
    """

    def __init__(self, available: Iterable[str] = (), responses=None):
        self.available = set(available)
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, ...]] = []
        self.cwds: list[Path | None] = []
        self.envs: list[dict[str, str] | None] = []

    def which(self, executable: str):
        return f"/usr/bin/{executable}" if executable in self.available else None

    def run(self, args, *, cwd=None, log_path=None, env=None):
        argv = tuple(str(arg) for arg in args)
        self.calls.append(argv)
        self.cwds.append(cwd)
        self.envs.append(dict(env) if env else None)
        response = self.responses.get(argv[1:])
        if isinstance(response, list):
            response = response.pop(0) if response else None
        if response is None:
            return CommandResult(args=argv, returncode=0)
        if isinstance(response, CommandResult):
            return response
        if isinstance(response, int):
            return CommandResult(args=argv, returncode=response)
        return CommandResult(args=argv, returncode=0, stdout=response)

    def subcommands(self) -> list[tuple[str, ...]]:
        return [call[1:] for call in self.calls]


@pytest.fixture
def fake_runner_cls():
    return FakeRunner


@pytest.fixture
def lab_dir(tmp_path: Path) -> Path:
    root = tmp_path / "lab"
    (root / "Vagrant").mkdir(parents=True)
    (root / "Packer").mkdir()
    (root / "Boxes").mkdir()
    (root / "Vagrant" / "Vagrantfile").write_bytes(SAMPLE_VAGRANTFILE.read_bytes())
    return root


@pytest.fixture
def settings(lab_dir: Path) -> LabSettings:
    return LabSettings(lab_dir=lab_dir)


def pytest_terminal_summary(terminalreporter, exitstatus, config):
    """
    Print statistics by marker at the end of the test session.
    """
    _ = (exitstatus, config)
    known_markers = {"unit_common", "unit_provisioner", "unit_app", "unit_ui"}
    marker_stats = defaultdict(lambda: {"passed": 0, "failed": 0, "skipped": 0, "total": 0})

    for outcome in ["passed", "failed", "skipped"]:
        for report in terminalreporter.stats.get(outcome, []):
            if report.when == "call" or (report.when == "setup" and report.outcome == "skipped"):
                for marker in known_markers:
                    if marker in report.keywords:
                        stats = marker_stats[marker]
                        stats[outcome] += 1
                        stats["total"] += 1

    if not marker_stats:
        return

    table = Table(title="Test Statistics by Marker", show_header=True, header_style="bold magenta")
    table.add_column("Marker", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Passed", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Skipped", justify="right", style="yellow")
    for marker in sorted(marker_stats):
        stats = marker_stats[marker]
        table.add_row(
            marker,
            str(stats["total"]),
            str(stats["passed"]),
            str(stats["failed"]),
            str(stats["skipped"]),
        )
    Console().print(table)
