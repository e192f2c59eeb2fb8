"""Lab provisioning engine: probe, validate, acquire boxes, plan, bring up, verify."""

from lab_common.api import configure_logging as _configure_logging

_configure_logging()

from lab_provisioner.api import (  # noqa: F401, E402
    ArtifactProvider,
    Backend,
    BringUpEngine,
    BuildOutcome,
    EnvironmentProber,
    LabSettings,
    PreflightValidator,
    ProviderSelection,
    TopologyPlanner,
    Verifier,
)

__all__ = [
    "ArtifactProvider",
    "Backend",
    "BringUpEngine",
    "BuildOutcome",
    "EnvironmentProber",
    "LabSettings",
    "PreflightValidator",
    "ProviderSelection",
    "TopologyPlanner",
    "Verifier",
]
