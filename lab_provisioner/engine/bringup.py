"""Bring hosts up one at a time with a single reprovision retry."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from lab_common.api import HostSpec, Topology

from lab_provisioner.models.types import (
    BringUpReport,
    BuildOutcome,
    BuildStatus,
    HostState,
    ProviderSelection,
)
from lab_provisioner.tools.vagrant import VagrantManager

logger = logging.getLogger(__name__)

StateObserver = Callable[[HostSpec, HostState], None]


class BringUpEngine:
    """Drive ``vagrant up`` / ``vagrant reload --provision`` per host.

    Hosts run strictly in topology order. A host that fails both its start
    and its reprovision attempt ends the sequence.
    """

    def __init__(
        self,
        manager: VagrantManager,
        selection: ProviderSelection,
        *,
        log_dir: Path | None = None,
        observer: StateObserver | None = None,
    ) -> None:
        self.manager = manager
        self.selection = selection
        self.log_dir = log_dir
        self._observer = observer

    def _transition(self, host: HostSpec, state: HostState) -> None:
        logger.info("%s -> %s", host.name, state.value)
        if self._observer:
            self._observer(host, state)

    def _log_path(self, host: HostSpec) -> Optional[Path]:
        return self.log_dir / f"{host.name}.log" if self.log_dir else None

    def bring_up(self, host: HostSpec) -> BuildOutcome:
        self._transition(host, HostState.PENDING)
        log_path = self._log_path(host)
        exit_signal = self.manager.up(
            host.name,
            self.selection.provider,
            log_path=log_path,
            box_suffix=self.selection.backend.box_suffix,
        )
        if exit_signal == 0:
            self._transition(host, HostState.UP)
            return BuildOutcome(host=host, attempts=1, status=BuildStatus.SUCCESS, exit_signal=0)

        logger.warning(
            "vagrant up %s exited with %s; retrying with reload --provision",
            host.name,
            exit_signal,
        )
        self._transition(host, HostState.FAILED_ONCE)
        exit_signal = self.manager.reload(
            host.name, log_path=log_path, box_suffix=self.selection.backend.box_suffix
        )
        if exit_signal == 0:
            self._transition(host, HostState.UP)
            return BuildOutcome(host=host, attempts=2, status=BuildStatus.SUCCESS, exit_signal=0)

        logger.error("%s failed after reprovisioning (exit %s)", host.name, exit_signal)
        self._transition(host, HostState.FAILED)
        return BuildOutcome(
            host=host, attempts=2, status=BuildStatus.FAILED, exit_signal=exit_signal
        )

    def run(self, topology: Topology) -> BringUpReport:
        report = BringUpReport()
        hosts = list(topology)
        for index, host in enumerate(hosts):
            outcome = self.bring_up(host)
            report.outcomes.append(outcome)
            if not outcome.succeeded:
                report.skipped = hosts[index + 1 :]
                if report.skipped:
                    logger.error(
                        "Aborting bring-up; not attempting %s",
                        ", ".join(h.name for h in report.skipped),
                    )
                break
        return report
