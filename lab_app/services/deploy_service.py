"""Top-level deployment driver.

Runs probe, preflight, artifact acquisition, planning, bring-up and
verification in order and stops at the first fatal result. Each stage's
error is captured on the returned ``DeploymentResult`` instead of
propagating, so callers always get a summary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from lab_common.api import (
    HostBringUpFailure,
    HostSpec,
    LabError,
    RunInfo,
    Topology,
    generate_run_id,
    phase_logger,
    run_log,
)
from lab_provisioner.api import (
    ArtifactProvider,
    ArtifactRecord,
    BringUpEngine,
    BuildOutcome,
    CommandRunner,
    EnvironmentProber,
    LabSettings,
    PackerBuilder,
    PreflightValidator,
    ProbeResult,
    ProviderSelection,
    TopologyPlanner,
    VagrantManager,
    Verifier,
)
from lab_provisioner.engine.artifacts import Downloader
from lab_provisioner.engine.bringup import StateObserver
from lab_provisioner.engine.preflight import DiskFree
from lab_provisioner.engine.prober import BackendChooser

logger = logging.getLogger(__name__)

RUN_LOG_NAME = "labctl.log"


class DeployStage(str, Enum):
    PROBE = "probe"
    PREFLIGHT = "preflight"
    ARTIFACTS = "artifacts"
    PLAN = "plan"
    BRING_UP = "bring_up"
    VERIFY = "verify"
    DONE = "done"


@dataclass
class DeploymentRequest:
    """What the caller asked for."""

    workstation_count: int = 1
    backend: Optional[str] = None
    download: bool = False
    verify: bool = True


@dataclass
class DeploymentResult:
    """Everything a run produced, up to the point it stopped."""

    run_id: str
    stage: DeployStage = DeployStage.PROBE
    selection: Optional[ProviderSelection] = None
    topology: Optional[Topology] = None
    artifacts: List[ArtifactRecord] = field(default_factory=list)
    outcomes: List[BuildOutcome] = field(default_factory=list)
    skipped: List[HostSpec] = field(default_factory=list)
    probes: List[ProbeResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[LabError] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def unreachable_probes(self) -> List[ProbeResult]:
        return [probe for probe in self.probes if not probe.reachable]


StageCallback = Callable[[DeployStage], None]


class DeploymentService:
    """Sequence the lab collaborators for one run."""

    def __init__(
        self,
        settings: LabSettings,
        *,
        runner: CommandRunner | None = None,
        manager: VagrantManager | None = None,
        builder: PackerBuilder | None = None,
        verifier: Verifier | None = None,
        downloader: Downloader | None = None,
        disk_free: DiskFree | None = None,
        planner: TopologyPlanner | None = None,
        chooser: BackendChooser | None = None,
        on_stage: StageCallback | None = None,
        on_host_state: StateObserver | None = None,
        warn: Callable[[str], None] | None = None,
    ) -> None:
        self.settings = settings
        self.runner = runner or CommandRunner()
        self.manager = manager or VagrantManager(
            settings.vagrant_dir, settings.vagrant_path, self.runner
        )
        self.builder = builder or PackerBuilder(
            settings.packer_dir, settings.packer_path, self.runner
        )
        self.verifier = verifier or Verifier(timeout_seconds=settings.probe_timeout_seconds)
        self.downloader = downloader
        self.disk_free = disk_free
        self.planner = planner or TopologyPlanner(settings)
        self.chooser = chooser
        self._on_stage = on_stage
        self._on_host_state = on_host_state
        self._warn = warn

    def _enter(self, result: DeploymentResult, stage: DeployStage) -> None:
        result.stage = stage
        phase_logger(__name__, stage.value).info("Entering %s stage", stage.value)
        if self._on_stage:
            self._on_stage(stage)

    def _warning(self, result: DeploymentResult, message: str) -> None:
        result.warnings.append(message)
        if self._warn:
            self._warn(message)

    def deploy(self, request: DeploymentRequest, run_id: str | None = None) -> DeploymentResult:
        run = RunInfo(run_id=run_id or generate_run_id(), state_dir=self.settings.state_dir)
        result = DeploymentResult(run_id=run.run_id)
        with run_log(run.log_dir / RUN_LOG_NAME):
            try:
                self._run(request, run, result)
            except LabError as exc:
                logger.error(
                    "Run %s stopped during %s: %s",
                    run.run_id,
                    result.stage.value,
                    exc,
                    extra={"lab_error": exc.to_dict()},
                )
                result.error = exc
        return result

    def _run(self, request: DeploymentRequest, run: RunInfo, result: DeploymentResult) -> None:
        self._enter(result, DeployStage.PROBE)
        prober = EnvironmentProber(
            self.settings,
            self.manager,
            self.runner,
            warn=lambda message: self._warning(result, message),
        )
        result.selection = prober.probe(request.backend, chooser=self.chooser)
        topology = self.planner.hosts(request.workstation_count)

        self._enter(result, DeployStage.PREFLIGHT)
        report = PreflightValidator(
            self.settings, self.manager, self.builder, disk_free=self.disk_free
        ).validate(
            topology, self.settings.lab_dir, build_mode=not request.download
        )
        for finding in report.warnings:
            self._warning(result, finding.message)
        report.raise_for_fatal()

        self._enter(result, DeployStage.ARTIFACTS)
        provider = ArtifactProvider(
            self.settings,
            result.selection,
            self.builder,
            download=request.download,
            downloader=self.downloader,
            log_dir=run.log_dir,
        )
        needed = self.settings.artifacts_for({host.role for host in topology})
        result.artifacts = provider.ensure(needed)

        self._enter(result, DeployStage.PLAN)
        result.topology = self.planner.plan(request.workstation_count, run.run_id)

        self._enter(result, DeployStage.BRING_UP)
        engine = BringUpEngine(
            self.manager,
            result.selection,
            log_dir=run.log_dir,
            observer=self._on_host_state,
        )
        bring_up = engine.run(result.topology)
        result.outcomes = bring_up.outcomes
        result.skipped = bring_up.skipped
        failed = bring_up.failed
        if failed is not None:
            raise HostBringUpFailure(
                f"{failed.host.name} failed to come up after {failed.attempts} attempts "
                f"(exit {failed.exit_signal})",
                host=failed.host.name,
                exit_signal=failed.exit_signal,
                context={"log": str(run.log_dir / f"{failed.host.name}.log")},
            )

        if request.verify:
            self._enter(result, DeployStage.VERIFY)
            result.probes = self.verifier.verify(self.settings.probes)
            for probe in result.unreachable_probes:
                self._warning(result, f"{probe.name} not reachable at {probe.endpoint} ({probe.detail})")

        self._enter(result, DeployStage.DONE)
