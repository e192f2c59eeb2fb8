"""Thin adapter over the Vagrant CLI."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

from .command import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

NOT_CREATED = "not created"
BOX_SUFFIX_ENV = "LAB_BOX_SUFFIX"
_VERSION_RE = re.compile(r"(\d+(?:\.\d+)+)")
_PLUGIN_RE = re.compile(r"^([A-Za-z0-9_.\-]+)\s+\(")
_STATUS_RE = re.compile(r"^(?P<name>\S+)\s+(?P<state>.+?)\s*(?:\((?P<provider>[^)]+)\))?\s*$")


@dataclass(frozen=True)
class MachineStatus:
    """One row of ``vagrant status``."""

    name: str
    state: str
    provider: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.state != NOT_CREATED


def parse_status(output: str) -> List[MachineStatus]:
    """Parse the ``Current machine states`` table of ``vagrant status``."""
    machines: List[MachineStatus] = []
    in_table = False
    for raw in output.splitlines():
        line = raw.rstrip()
        if not in_table:
            if line.startswith("Current machine states"):
                in_table = True
            continue
        if not line.strip():
            if machines:
                break
            continue
        match = _STATUS_RE.match(line.strip())
        if match:
            machines.append(
                MachineStatus(
                    name=match.group("name"),
                    state=match.group("state").strip(),
                    provider=match.group("provider"),
                )
            )
    return machines


def parse_plugins(output: str) -> set[str]:
    """Return plugin names from ``vagrant plugin list``."""
    plugins: set[str] = set()
    for line in output.splitlines():
        match = _PLUGIN_RE.match(line.strip())
        if match:
            plugins.add(match.group(1))
    return plugins


def _box_env(box_suffix: Optional[str]) -> Optional[dict[str, str]]:
    """Environment the Vagrantfile reads to pick the backend-specific box file."""
    return {BOX_SUFFIX_ENV: box_suffix} if box_suffix else None


def parse_version(output: str) -> Optional[str]:
    match = _VERSION_RE.search(output)
    return match.group(1) if match else None


class VagrantManager:
    """Environment manager operations, always run inside ``vagrant_dir``."""

    def __init__(
        self,
        vagrant_dir: Path,
        executable: str = "vagrant",
        runner: CommandRunner | None = None,
    ) -> None:
        self.vagrant_dir = vagrant_dir
        self.executable = executable
        self.runner = runner or CommandRunner()

    def resolve(self) -> Optional[str]:
        """Absolute path to the executable, or None when absent."""
        return self.runner.which(self.executable)

    def _run(
        self,
        *args: str,
        log_path: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        return self.runner.run(
            [self.executable, *args], cwd=self.vagrant_dir, log_path=log_path, env=env
        )

    def version(self) -> Optional[str]:
        result = self._run("--version")
        if not result.ok:
            return None
        return parse_version(result.stdout)

    def status(self) -> List[MachineStatus]:
        result = self._run("status")
        if not result.ok:
            logger.warning("vagrant status exited with %s: %s", result.returncode, result.stderr.strip())
        return parse_status(result.stdout)

    def plugins(self) -> set[str]:
        result = self._run("plugin", "list")
        if not result.ok:
            logger.warning("vagrant plugin list exited with %s", result.returncode)
            return set()
        return parse_plugins(result.stdout)

    def install_plugin(self, name: str) -> bool:
        logger.info("Installing Vagrant plugin %s", name)
        return self._run("plugin", "install", name).ok

    def up(
        self,
        host: str,
        provider: str,
        log_path: Path | None = None,
        box_suffix: str | None = None,
    ) -> int:
        return self._run(
            "up", host, "--provider", provider, log_path=log_path, env=_box_env(box_suffix)
        ).returncode

    def reload(
        self, host: str, log_path: Path | None = None, box_suffix: str | None = None
    ) -> int:
        return self._run(
            "reload", host, "--provision", log_path=log_path, env=_box_env(box_suffix)
        ).returncode
