"""Public provisioning API surface."""

from lab_provisioner.engine.artifacts import ArtifactProvider, md5sum
from lab_provisioner.engine.bringup import BringUpEngine
from lab_provisioner.engine.preflight import (
    PreflightFinding,
    PreflightValidator,
    Severity,
    ValidationReport,
)
from lab_provisioner.engine.prober import EnvironmentProber
from lab_provisioner.engine.topology import TopologyPlanner, TopologyStateStore
from lab_provisioner.engine.verifier import Verifier
from lab_provisioner.models.settings import ArtifactConfig, LabSettings, ProbeConfig
from lab_provisioner.models.types import (
    ArtifactRecord,
    Backend,
    BringUpReport,
    BuildOutcome,
    BuildStatus,
    HostState,
    ProbeResult,
    ProviderSelection,
)
from lab_provisioner.remote import GuestConfigurator
from lab_provisioner.tools import CommandRunner, MachineStatus, PackerBuilder, VagrantManager

__all__ = [
    "ArtifactConfig",
    "ArtifactProvider",
    "ArtifactRecord",
    "Backend",
    "BringUpEngine",
    "BringUpReport",
    "BuildOutcome",
    "BuildStatus",
    "CommandRunner",
    "EnvironmentProber",
    "GuestConfigurator",
    "HostState",
    "LabSettings",
    "MachineStatus",
    "PackerBuilder",
    "PreflightFinding",
    "PreflightValidator",
    "ProbeConfig",
    "ProbeResult",
    "ProviderSelection",
    "Severity",
    "TopologyPlanner",
    "TopologyStateStore",
    "ValidationReport",
    "VagrantManager",
    "Verifier",
    "md5sum",
]
