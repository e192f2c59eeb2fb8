"""Lab host definitions shared across layers."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Sequence

from lab_common.errors import ConfigurationError


class HostRole(str, Enum):
    """Role a host plays in the lab."""

    LOGGER = "logger"
    DOMAIN_CONTROLLER = "domain_controller"
    FORWARDER = "forwarder"
    WORKSTATION = "workstation"


@dataclass(frozen=True)
class HostSpec:
    """A planned lab host."""

    name: str
    role: HostRole
    static_address: Optional[str] = None

    @property
    def is_windows(self) -> bool:
        """Every role except the logger runs Windows."""
        return self.role is not HostRole.LOGGER


_SINGLETON_ROLES = (HostRole.LOGGER, HostRole.DOMAIN_CONTROLLER, HostRole.FORWARDER)


@dataclass(frozen=True)
class Topology:
    """Ordered, validated list of hosts to bring up."""

    hosts: tuple[HostSpec, ...]

    def __post_init__(self) -> None:
        roles = Counter(host.role for host in self.hosts)
        for role in _SINGLETON_ROLES:
            if roles[role] != 1:
                raise ConfigurationError(
                    f"Topology needs exactly one {role.value} host, found {roles[role]}"
                )
        if roles[HostRole.WORKSTATION] < 1:
            raise ConfigurationError("Topology needs at least one workstation host")
        names = Counter(host.name for host in self.hosts)
        duplicates = sorted(name for name, count in names.items() if count > 1)
        if duplicates:
            raise ConfigurationError(
                f"Duplicate host names in topology: {', '.join(duplicates)}",
                context={"duplicates": duplicates},
            )

    @classmethod
    def from_hosts(cls, hosts: Sequence[HostSpec]) -> "Topology":
        return cls(hosts=tuple(hosts))

    def __iter__(self) -> Iterator[HostSpec]:
        return iter(self.hosts)

    def __len__(self) -> int:
        return len(self.hosts)

    @property
    def names(self) -> list[str]:
        return [host.name for host in self.hosts]

    def get(self, name: str) -> HostSpec:
        for host in self.hosts:
            if host.name == name:
                return host
        raise KeyError(name)
