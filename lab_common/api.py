"""Public API surface for lab_common."""

from lab_common.config import (
    collect_env_overrides,
    parse_bool_env,
    parse_float_env,
    parse_str_env,
)
from lab_common.errors import (
    ArtifactError,
    ArtifactFailure,
    CommandError,
    ConfigurationError,
    HostBringUpFailure,
    LabError,
    PrerequisiteMissing,
    ProbeFailure,
    RemoteExecutionError,
    ValidationError,
    ValidationKind,
)
from lab_common.logging import configure_logging, phase_logger, run_log
from lab_common.models.hosts import HostRole, HostSpec, Topology
from lab_common.run_info import RunInfo, generate_run_id

__all__ = [
    "ArtifactError",
    "ArtifactFailure",
    "CommandError",
    "ConfigurationError",
    "HostBringUpFailure",
    "HostRole",
    "HostSpec",
    "LabError",
    "PrerequisiteMissing",
    "ProbeFailure",
    "RemoteExecutionError",
    "RunInfo",
    "Topology",
    "ValidationError",
    "ValidationKind",
    "collect_env_overrides",
    "configure_logging",
    "generate_run_id",
    "parse_bool_env",
    "parse_float_env",
    "parse_str_env",
    "phase_logger",
    "run_log",
]
