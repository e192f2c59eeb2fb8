"""Report types for the host readiness checks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass
class DoctorCheckItem:
    label: str
    ok: bool
    required: bool
    detail: str = ""


@dataclass
class DoctorCheckGroup:
    title: str
    items: List[DoctorCheckItem]

    @property
    def failures(self) -> int:
        return sum(1 for item in self.items if item.required and not item.ok)


@dataclass
class DoctorReport:
    groups: List[DoctorCheckGroup] = field(default_factory=list)
    info_messages: List[str] = field(default_factory=list)

    @property
    def total_failures(self) -> int:
        return sum(group.failures for group in self.groups)

    @property
    def ok(self) -> bool:
        return self.total_failures == 0

    def extend(self, other: "DoctorReport") -> "DoctorReport":
        self.groups.extend(other.groups)
        self.info_messages.extend(other.info_messages)
        return self
