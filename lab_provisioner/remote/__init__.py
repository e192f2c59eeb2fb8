"""Remote execution on lab guests."""

from .channels import RemoteChannel, SSHChannel, StepResult, WinRMChannel, run_steps
from .guest import GuestConfigurator

__all__ = [
    "GuestConfigurator",
    "RemoteChannel",
    "SSHChannel",
    "StepResult",
    "WinRMChannel",
    "run_steps",
]
