"""Adapters for the external tools the orchestrator drives."""

from .command import CommandResult, CommandRunner
from .packer import PackerBuilder
from .vagrant import MachineStatus, VagrantManager, parse_plugins, parse_status

__all__ = [
    "CommandResult",
    "CommandRunner",
    "MachineStatus",
    "PackerBuilder",
    "VagrantManager",
    "parse_plugins",
    "parse_status",
]
