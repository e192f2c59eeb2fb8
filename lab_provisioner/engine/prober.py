"""Detect which virtualization backends this machine can drive."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from lab_common.api import PrerequisiteMissing

from lab_provisioner.models.settings import LabSettings
from lab_provisioner.models.types import Backend, ProviderSelection
from lab_provisioner.tools.command import CommandRunner
from lab_provisioner.tools.vagrant import VagrantManager

logger = logging.getLogger(__name__)

BackendChooser = Callable[[Sequence[Backend]], Optional[str]]


class EnvironmentProber:
    """Enumerate installed backends and pick the one to use for a run."""

    def __init__(
        self,
        settings: LabSettings,
        manager: VagrantManager,
        runner: CommandRunner | None = None,
        warn: Callable[[str], None] | None = None,
    ) -> None:
        self.settings = settings
        self.manager = manager
        self.runner = runner or manager.runner
        self._warn = warn
        self.warnings: List[str] = []

    def _warning(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)
        if self._warn:
            self._warn(message)

    def installed_backends(self) -> List[Backend]:
        """Backends whose management binary is present."""
        found = []
        for backend in Backend:
            binary = self.settings.backend_binaries.get(backend)
            if binary and self.runner.which(binary):
                found.append(backend)
            else:
                logger.debug("Backend %s not detected (%s)", backend.value, binary)
        return found

    def available_backends(self) -> List[Backend]:
        """Installed backends whose companion plugin is also present."""
        installed = self.installed_backends()
        if not installed:
            return []
        needs_plugins = any(self.settings.backend_plugins.get(b) for b in installed)
        plugins: set[str] = set()
        if needs_plugins and self.manager.resolve():
            plugins = self.manager.plugins()
        available = []
        for backend in installed:
            plugin = self.settings.backend_plugins.get(backend)
            if plugin and plugin not in plugins:
                self._warning(
                    f"{backend.value} is installed but the {plugin} plugin is missing; "
                    f"skipping it (vagrant plugin install {plugin})."
                )
                continue
            available.append(backend)
        return available

    def probe(
        self,
        preferred: str | Backend | None = None,
        chooser: BackendChooser | None = None,
    ) -> ProviderSelection:
        """Return the backend for this run or raise PrerequisiteMissing."""
        available = self.available_backends()
        if not available:
            raise PrerequisiteMissing("No usable virtualization backend found", backend="none")

        names = ", ".join(b.value for b in available)
        if preferred is not None:
            backend = _coerce(preferred)
            if backend is None or backend not in available:
                raise PrerequisiteMissing(
                    f"Requested backend '{_label(preferred)}' is not available (available: {names})",
                    backend=_label(preferred),
                    hint=f"Re-run with --backend set to one of: {names}.",
                )
            return ProviderSelection(backend=backend)

        if len(available) == 1:
            logger.info("Only %s is available; selecting it", available[0].value)
            return ProviderSelection(backend=available[0])

        if chooser is None:
            raise PrerequisiteMissing(
                f"Several backends are available ({names}) and none was selected",
                backend="ambiguous",
                hint=f"Re-run with --backend set to one of: {names}.",
            )
        while True:
            backend = _coerce(chooser(available))
            if backend in available:
                return ProviderSelection(backend=backend)
            self._warning(f"Please choose one of: {names}")


def _coerce(value: str | Backend | None) -> Optional[Backend]:
    if isinstance(value, Backend):
        return value
    if not value:
        return None
    try:
        return Backend(value.strip().lower())
    except ValueError:
        return None


def _label(value: str | Backend) -> str:
    return value.value if isinstance(value, Backend) else str(value)
