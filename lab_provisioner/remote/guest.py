"""Apply configured guest steps over the transport that matches the host."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from lab_common.api import ConfigurationError, HostSpec

from lab_provisioner.models.settings import LabSettings

from .channels import RemoteChannel, SSHChannel, StepResult, WinRMChannel, run_steps

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[HostSpec], RemoteChannel]


class GuestConfigurator:
    """Run ordered command lists on guests (SSH for Linux, WinRM for Windows)."""

    def __init__(
        self,
        settings: LabSettings,
        channel_factory: Optional[ChannelFactory] = None,
    ) -> None:
        self.settings = settings
        self._channel_factory = channel_factory or self._default_channel

    def _default_channel(self, host: HostSpec) -> RemoteChannel:
        if not host.static_address:
            raise ConfigurationError(f"Host {host.name} has no address to connect to")
        if host.is_windows:
            return WinRMChannel(
                host=host.static_address,
                user=self.settings.winrm_user,
                password=self.settings.winrm_password,
            )
        return SSHChannel(
            host=host.static_address,
            user=self.settings.ssh_user,
            key_path=self.settings.ssh_key_path,
        )

    def steps_for(self, host: HostSpec) -> List[str]:
        return list(self.settings.guest_steps.get(host.name, []))

    def run(self, host: HostSpec, commands: Sequence[str] | None = None) -> List[StepResult]:
        """Run ``commands`` (or the configured steps) on ``host``."""
        steps = list(commands) if commands is not None else self.steps_for(host)
        if not steps:
            logger.info("No guest steps configured for %s", host.name)
            return []
        channel = self._channel_factory(host)
        return run_steps(channel, host.name, steps)
