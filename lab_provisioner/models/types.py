"""Shared provisioning types and value objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from lab_common.api import HostSpec


class Backend(str, Enum):
    """Supported virtualization backends."""

    VIRTUALBOX = "virtualbox"
    VMWARE_DESKTOP = "vmware_desktop"

    @property
    def builder_target(self) -> str:
        """Image-builder ``--only`` filter for this backend."""
        return _BUILDER_TARGETS[self]

    @property
    def box_suffix(self) -> str:
        """Suffix used in artifact file names."""
        return _BOX_SUFFIXES[self]


_BUILDER_TARGETS = {
    Backend.VIRTUALBOX: "virtualbox-iso",
    Backend.VMWARE_DESKTOP: "vmware-iso",
}
_BOX_SUFFIXES = {
    Backend.VIRTUALBOX: "virtualbox",
    Backend.VMWARE_DESKTOP: "vmware",
}


@dataclass(frozen=True)
class ProviderSelection:
    """Backend chosen for the whole run."""

    backend: Backend

    @property
    def provider(self) -> str:
        """Value passed to ``--provider``."""
        return self.backend.value

    def box_name(self, artifact: str) -> str:
        return f"{artifact}_{self.backend.box_suffix}.box"


class BuildStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class HostState(str, Enum):
    """Bring-up states of a single host."""

    PENDING = "pending"
    FAILED_ONCE = "failed_once"
    UP = "up"
    FAILED = "failed"


MAX_ATTEMPTS = 2


@dataclass(frozen=True)
class BuildOutcome:
    """Terminal bring-up result for one host."""

    host: HostSpec
    attempts: int
    status: BuildStatus
    exit_signal: int

    def __post_init__(self) -> None:
        if self.attempts not in (1, MAX_ATTEMPTS):
            raise ValueError(f"attempts must be 1 or {MAX_ATTEMPTS}, got {self.attempts}")

    @property
    def succeeded(self) -> bool:
        return self.status is BuildStatus.SUCCESS


@dataclass
class BringUpReport:
    """Outcomes of a bring-up sequence."""

    outcomes: List[BuildOutcome] = field(default_factory=list)
    skipped: List[HostSpec] = field(default_factory=list)

    @property
    def failed(self) -> Optional[BuildOutcome]:
        for outcome in self.outcomes:
            if not outcome.succeeded:
                return outcome
        return None

    @property
    def success(self) -> bool:
        return self.failed is None and not self.skipped


@dataclass
class ArtifactRecord:
    """State of one required image during acquisition."""

    name: str
    expected_checksum: str
    local_path: Optional[Path] = None
    verified: bool = False


@dataclass(frozen=True)
class ProbeResult:
    """Observation from one post-deployment probe."""

    endpoint: str
    expected_marker: str
    reachable: bool
    name: str = ""
    detail: str = ""
