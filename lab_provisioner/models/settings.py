"""Lab configuration model."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from lab_common.api import HostRole

from .types import Backend

DEFAULT_ARTIFACT_BASE_URL = "https://boxes.detectionlab.network"
DEFAULT_NETWORK_PREFIX = "192.168.38"


class ArtifactConfig(BaseModel):
    """Build definition and per-backend checksums for one image."""

    build_definition: str = Field(description="Image-builder definition file (e.g. windows_10.json)")
    checksums: Dict[Backend, str] = Field(
        default_factory=dict, description="Expected MD5 of the box, keyed by backend"
    )

    @field_validator("checksums")
    @classmethod
    def _lowercase_checksums(cls, value: Dict[Backend, str]) -> Dict[Backend, str]:
        return {backend: digest.strip().lower() for backend, digest in value.items()}


def _default_artifacts() -> Dict[str, ArtifactConfig]:
    return {
        "windows_2016": ArtifactConfig(
            build_definition="windows_2016.json",
            checksums={
                Backend.VIRTUALBOX: "3a7e0aea21fa5b8a7e2d1cb47b8f5b1e",
                Backend.VMWARE_DESKTOP: "8a6a2f9a4c1b7d52f0d0f2e14c9a3c77",
            },
        ),
        "windows_10": ArtifactConfig(
            build_definition="windows_10.json",
            checksums={
                Backend.VIRTUALBOX: "c1b42c1d6d3c2e9e6f8f0a7a1d5b4e29",
                Backend.VMWARE_DESKTOP: "5f0e8d61b2a94c3d7e1f6a0b9c8d2e41",
            },
        ),
    }


class ProbeConfig(BaseModel):
    """HTTP(S) endpoint checked after deployment."""

    name: str = Field(description="Human-readable service name")
    url: str = Field(description="Endpoint URL")
    marker: str = Field(default="", description="Substring expected in the response body")
    success_on_401: bool = Field(
        default=False,
        description="Treat an HTTP 401 challenge as reachable",
    )

    @field_validator("url")
    @classmethod
    def _require_http_scheme(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"probe url must be an http(s) URL, got {value!r}")
        return value

    @model_validator(mode="after")
    def _needs_marker_or_401(self) -> "ProbeConfig":
        if not self.marker and not self.success_on_401:
            raise ValueError(f"Probe '{self.name}' needs a marker or success_on_401")
        return self


def _default_probes(logger_ip: str, wef_ip: str) -> List[ProbeConfig]:
    return [
        ProbeConfig(
            name="Splunk",
            url=f"https://{logger_ip}:8000/en-US/account/login?return_to=%2Fen-US%2F",
            marker="This browser is not supported by Splunk",
        ),
        ProbeConfig(
            name="Fleet",
            url=f"https://{logger_ip}:8412",
            marker="Kolide Fleet",
        ),
        ProbeConfig(
            name="Microsoft ATA",
            url=f"https://{wef_ip}",
            success_on_401=True,
        ),
    ]


def _default_host_octets() -> Dict[HostRole, int]:
    return {
        HostRole.LOGGER: 105,
        HostRole.DOMAIN_CONTROLLER: 102,
        HostRole.FORWARDER: 103,
        HostRole.WORKSTATION: 110,
    }


class LabSettings(BaseModel):
    """Everything a deployment run needs to know about the host machine."""

    lab_dir: Path = Field(description="Root of the lab checkout")
    vagrant_dir: Optional[Path] = Field(default=None, description="Directory holding the Vagrantfile")
    packer_dir: Optional[Path] = Field(default=None, description="Directory holding build definitions")
    boxes_dir: Optional[Path] = Field(default=None, description="Canonical artifact directory")
    state_dir: Optional[Path] = Field(default=None, description="Snapshots and per-run logs")

    vagrant_path: str = Field(default="vagrant", description="Environment manager executable")
    packer_path: str = Field(default="packer", description="Image builder executable")
    backend_binaries: Dict[Backend, str] = Field(
        default_factory=lambda: {
            Backend.VIRTUALBOX: "VBoxManage",
            Backend.VMWARE_DESKTOP: "vmrun",
        },
        description="Management binary that proves a backend is installed",
    )
    backend_plugins: Dict[Backend, Optional[str]] = Field(
        default_factory=lambda: {
            Backend.VIRTUALBOX: None,
            Backend.VMWARE_DESKTOP: "vagrant-vmware-desktop",
        },
        description="Companion environment-manager plugin per backend",
    )
    required_plugins: List[str] = Field(
        default_factory=lambda: ["vagrant-reload"],
        description="Environment-manager plugins every run needs",
    )
    known_bad_vagrant_versions: List[str] = Field(default_factory=lambda: ["1.9.0"])
    min_vagrant_version: str = Field(default="2.2.9")
    min_free_disk_gb: float = Field(default=80.0, ge=0)

    artifact_base_url: str = Field(default=DEFAULT_ARTIFACT_BASE_URL)
    artifacts: Dict[str, ArtifactConfig] = Field(default_factory=_default_artifacts)
    download_timeout_seconds: float = Field(default=60.0, gt=0)

    network_prefix: str = Field(default=DEFAULT_NETWORK_PREFIX)
    host_octets: Dict[HostRole, int] = Field(default_factory=_default_host_octets)
    workstation_template_name: str = Field(
        default="workstation-0",
        description="Name of the single workstation defined in the original Vagrantfile",
    )

    probes: Optional[List[ProbeConfig]] = Field(
        default=None,
        description="Service probes; derived from the logger and wef addresses when unset",
    )
    probe_timeout_seconds: float = Field(default=10.0, gt=0)

    guest_steps: Dict[str, List[str]] = Field(
        default_factory=dict, description="Ordered guest commands keyed by host name"
    )
    ssh_user: str = Field(default="vagrant")
    ssh_key_path: Optional[Path] = Field(default=None)
    winrm_user: str = Field(default="vagrant")
    winrm_password: str = Field(default="vagrant")

    model_config = {"extra": "forbid"}

    @field_validator("artifact_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("artifact_base_url must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("host_octets")
    @classmethod
    def _merge_default_octets(cls, value: Dict[HostRole, int]) -> Dict[HostRole, int]:
        octets = {**_default_host_octets(), **value}
        for role, octet in octets.items():
            if not 1 <= octet <= 254:
                raise ValueError(f"host octet for {role.value} must be between 1 and 254")
        return octets

    @model_validator(mode="after")
    def _derive_dirs(self) -> "LabSettings":
        self.vagrant_dir = self.vagrant_dir or self.lab_dir / "Vagrant"
        self.packer_dir = self.packer_dir or self.lab_dir / "Packer"
        self.boxes_dir = self.boxes_dir or self.lab_dir / "Boxes"
        self.state_dir = self.state_dir or self.lab_dir / ".labctl"
        return self

    @model_validator(mode="after")
    def _derive_probes(self) -> "LabSettings":
        if self.probes is None:
            self.probes = _default_probes(
                self.address_for(HostRole.LOGGER), self.address_for(HostRole.FORWARDER)
            )
        return self

    @property
    def vagrantfile(self) -> Path:
        return self.vagrant_dir / "Vagrantfile"

    def address_for(self, role: HostRole, index: int = 0) -> str:
        return f"{self.network_prefix}.{self.host_octets[role] + index}"

    def artifacts_for(self, roles: set[HostRole]) -> set[str]:
        """Artifacts the given roles boot from."""
        needed: set[str] = set()
        if roles & {HostRole.DOMAIN_CONTROLLER, HostRole.FORWARDER}:
            needed.add("windows_2016")
        if HostRole.WORKSTATION in roles:
            needed.add("windows_10")
        return needed & set(self.artifacts)
