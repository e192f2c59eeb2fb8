"""Shared helpers for lab-deployer."""

from lab_common.api import HostRole, HostSpec, LabError, RunInfo, Topology, configure_logging

__all__ = ["configure_logging", "HostRole", "HostSpec", "LabError", "RunInfo", "Topology"]
