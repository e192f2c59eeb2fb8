"""
Service for checking whether this machine can host the lab (doctor).
"""

import platform
from pathlib import Path
from typing import List, Optional, Tuple

from lab_app.services.doctor_types import DoctorCheckGroup, DoctorCheckItem, DoctorReport
from lab_provisioner.api import (
    Backend,
    CommandRunner,
    EnvironmentProber,
    LabSettings,
    PackerBuilder,
    VagrantManager,
)
from lab_provisioner.engine.preflight import filesystem_free_space

_GB = 1024**3


class DoctorService:
    """Check tools, backends, plugins and disk space without changing anything."""

    def __init__(
        self,
        settings: LabSettings,
        runner: Optional[CommandRunner] = None,
        manager: Optional[VagrantManager] = None,
        builder: Optional[PackerBuilder] = None,
        disk_free=filesystem_free_space,
    ):
        self.settings = settings
        self.runner = runner or CommandRunner()
        self.manager = manager or VagrantManager(
            settings.vagrant_dir, settings.vagrant_path, self.runner
        )
        self.builder = builder or PackerBuilder(
            settings.packer_dir, settings.packer_path, self.runner
        )
        self._disk_free = disk_free

    def _group(self, title: str, items: List[Tuple[str, bool, bool]]) -> DoctorCheckGroup:
        return DoctorCheckGroup(title, [DoctorCheckItem(label, ok, req) for label, ok, req in items])

    def check_tools(self) -> DoctorReport:
        """Vagrant is always required; Packer only for local builds."""
        vagrant = self.manager.resolve()
        items = [
            (f"vagrant ({self.settings.vagrant_path})", vagrant is not None, True),
            (f"packer ({self.settings.packer_path})", self.builder.resolve() is not None, False),
        ]
        info = []
        if vagrant:
            version = self.manager.version()
            info.append(f"Vagrant version: {version or 'unknown'}")
        return DoctorReport(groups=[self._group("Tools", items)], info_messages=info)

    def check_backends(self) -> DoctorReport:
        """At least one backend (with its companion plugin) must be usable."""
        prober = EnvironmentProber(self.settings, self.manager, self.runner)
        installed = set(prober.installed_backends())
        available = set(prober.available_backends())
        items = []
        for backend in Backend:
            binary = self.settings.backend_binaries.get(backend, "?")
            items.append((f"{backend.value} ({binary})", backend in installed, False))
            plugin = self.settings.backend_plugins.get(backend)
            if plugin and backend in installed:
                items.append((f"{plugin} plugin", backend in available, False))
        items.append(("usable backend", bool(available), True))
        return DoctorReport(
            groups=[self._group("Backends", items)],
            info_messages=list(prober.warnings),
        )

    def check_plugins(self) -> DoctorReport:
        if not self.manager.resolve():
            return DoctorReport(info_messages=["Skipping plugin checks: vagrant not found."])
        installed = self.manager.plugins()
        items = [(plugin, plugin in installed, False) for plugin in self.settings.required_plugins]
        return DoctorReport(
            groups=[self._group("Vagrant Plugins", items)],
            info_messages=["Missing plugins are installed automatically by `labctl deploy`."]
            if not all(ok for _, ok, _ in items)
            else [],
        )

    def check_disk(self, workdir: Optional[Path] = None) -> DoctorReport:
        threshold = self.settings.min_free_disk_gb
        items = []
        for mountpoint, free in self._disk_free(workdir or self.settings.lab_dir):
            free_gb = free / _GB
            items.append((f"{mountpoint} ({free_gb:.1f} GB free)", free_gb >= threshold, False))
        return DoctorReport(
            groups=[self._group(f"Disk Space (>= {threshold:.0f} GB)", items)],
            info_messages=[],
        )

    def check_all(self) -> DoctorReport:
        """Run all checks."""
        report = DoctorReport(
            info_messages=[
                f"Python: {platform.python_version()} on {platform.system()} {platform.release()}"
            ]
        )
        for part in (self.check_tools(), self.check_backends(), self.check_plugins(), self.check_disk()):
            report.extend(part)
        return report
