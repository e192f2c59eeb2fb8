"""Preflight checks that must pass before any artifact or host work."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import psutil

from lab_common.api import Topology, ValidationError, ValidationKind

from lab_provisioner.models.settings import LabSettings
from lab_provisioner.tools.packer import PackerBuilder
from lab_provisioner.tools.vagrant import VagrantManager

logger = logging.getLogger(__name__)

_GB = 1024**3

DiskFree = Callable[[Path], Iterable[tuple[str, int]]]


class Severity(str, Enum):
    FATAL = "fatal"
    WARNING = "warning"


@dataclass(frozen=True)
class PreflightFinding:
    kind: ValidationKind
    severity: Severity
    message: str
    hint: Optional[str] = None

    def to_error(self) -> ValidationError:
        return ValidationError(self.message, kind=self.kind, hint=self.hint)


@dataclass
class ValidationReport:
    findings: List[PreflightFinding] = field(default_factory=list)

    def add(
        self,
        kind: ValidationKind,
        severity: Severity,
        message: str,
        hint: str | None = None,
    ) -> None:
        self.findings.append(PreflightFinding(kind, severity, message, hint))

    @property
    def fatal(self) -> List[PreflightFinding]:
        return [f for f in self.findings if f.severity is Severity.FATAL]

    @property
    def warnings(self) -> List[PreflightFinding]:
        return [f for f in self.findings if f.severity is Severity.WARNING]

    @property
    def ok(self) -> bool:
        return not self.fatal

    def raise_for_fatal(self) -> None:
        """Raise the first fatal finding as a ValidationError."""
        if self.fatal:
            raise self.fatal[0].to_error()


def version_tuple(value: str) -> tuple[int, ...]:
    parts = []
    for token in value.split("."):
        digits = "".join(ch for ch in token if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    return tuple(parts)


class PreflightValidator:
    """Validate tools, versions, prior state, disk space and plugins."""

    def __init__(
        self,
        settings: LabSettings,
        manager: VagrantManager,
        builder: PackerBuilder,
        disk_free: DiskFree | None = None,
    ) -> None:
        self.settings = settings
        self.manager = manager
        self.builder = builder
        self._disk_free = disk_free or filesystem_free_space

    def validate(self, topology: Topology, workdir: Path, build_mode: bool = False) -> ValidationReport:
        report = ValidationReport()
        vagrant_ok = self._check_tools(report, build_mode)
        if vagrant_ok:
            self._check_version(report)
            self._check_instances(report, topology)
        self._check_disk(report, workdir)
        if vagrant_ok:
            self._check_plugins(report)
        for finding in report.findings:
            log = logger.error if finding.severity is Severity.FATAL else logger.warning
            log("Preflight %s: %s", finding.kind.value, finding.message)
        return report

    def _check_tools(self, report: ValidationReport, build_mode: bool) -> bool:
        vagrant_ok = True
        if not self.manager.resolve():
            vagrant_ok = False
            report.add(
                ValidationKind.TOOL_MISSING,
                Severity.FATAL,
                f"Vagrant not found at '{self.manager.executable}'",
                hint="Install Vagrant or re-run with --vagrant-path /path/to/vagrant.",
            )
        if build_mode and not self.builder.resolve():
            report.add(
                ValidationKind.TOOL_MISSING,
                Severity.FATAL,
                f"Packer not found at '{self.builder.executable}'",
                hint="Re-run with --packer-path /path/to/packer, or use --download.",
            )
        return vagrant_ok

    def _check_version(self, report: ValidationReport) -> None:
        version = self.manager.version()
        if version is None:
            logger.warning("Unable to determine the Vagrant version")
            return
        if version in self.settings.known_bad_vagrant_versions:
            report.add(
                ValidationKind.VERSION_INCOMPATIBLE,
                Severity.FATAL,
                f"Vagrant {version} is known to be incompatible",
                hint="Install a current Vagrant release.",
            )
        elif version_tuple(version) < version_tuple(self.settings.min_vagrant_version):
            report.add(
                ValidationKind.VERSION_INCOMPATIBLE,
                Severity.WARNING,
                f"Vagrant {version} is older than the recommended "
                f"{self.settings.min_vagrant_version}",
            )

    def _check_instances(self, report: ValidationReport, topology: Topology) -> None:
        existing = [m for m in self.manager.status() if m.created]
        if not existing:
            return
        described = ", ".join(f"{m.name} ({m.state})" for m in existing)
        overlap = sorted({m.name for m in existing} & set(topology.names))
        message = f"Existing lab instances found: {described}"
        if overlap:
            message += f"; planned hosts affected: {', '.join(overlap)}"
        report.add(
            ValidationKind.INSTANCES_ALREADY_EXIST,
            Severity.FATAL,
            message,
            hint=f"Remove them first (cd {self.settings.vagrant_dir} && vagrant destroy -f).",
        )

    def _check_disk(self, report: ValidationReport, workdir: Path) -> None:
        threshold = self.settings.min_free_disk_gb
        for mountpoint, free in self._disk_free(workdir):
            free_gb = free / _GB
            if free_gb < threshold:
                report.add(
                    ValidationKind.LOW_DISK_SPACE,
                    Severity.WARNING,
                    f"{mountpoint} has {free_gb:.1f} GB free (recommended: {threshold:.0f} GB)",
                    hint="Free up disk space before building or downloading boxes.",
                )

    def _check_plugins(self, report: ValidationReport) -> None:
        installed = self.manager.plugins()
        for plugin in self.settings.required_plugins:
            if plugin in installed:
                continue
            logger.info("Required plugin %s missing; installing", plugin)
            if self.manager.install_plugin(plugin):
                continue
            report.add(
                ValidationKind.PLUGIN_MISSING,
                Severity.FATAL,
                f"Vagrant plugin {plugin} is missing and could not be installed",
                hint=f"Install it manually: vagrant plugin install {plugin}.",
            )


def filesystem_free_space(workdir: Path) -> List[tuple[str, int]]:
    """Free bytes per mounted filesystem, including the one holding ``workdir``."""
    seen: dict[str, int] = {}
    targets = [p.mountpoint for p in psutil.disk_partitions(all=False)]
    workdir_target = workdir if workdir.exists() else workdir.parent
    targets.append(str(workdir_target))
    for target in targets:
        try:
            usage = psutil.disk_usage(target)
        except (OSError, PermissionError):
            logger.debug("Skipping unreadable filesystem %s", target)
            continue
        seen.setdefault(target, usage.free)
    return sorted(seen.items())
