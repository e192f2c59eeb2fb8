"""Shared run identity helpers."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path


def generate_run_id() -> str:
    """Return a sortable, unique run identifier."""
    stamp = datetime.now(timezone.utc).strftime("run-%Y%m%d-%H%M%S")
    return f"{stamp}-{uuid.uuid4().hex[:6]}"


@dataclass(frozen=True)
class RunInfo:
    """Lightweight metadata about a deployment run."""

    run_id: str
    state_dir: Path
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def log_dir(self) -> Path:
        return self.state_dir / "logs" / self.run_id
