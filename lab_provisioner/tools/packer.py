"""Thin adapter over the Packer CLI."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .command import CommandRunner

logger = logging.getLogger(__name__)


class PackerBuilder:
    """Image builder invocations, run inside ``packer_dir``."""

    def __init__(
        self,
        packer_dir: Path,
        executable: str = "packer",
        runner: CommandRunner | None = None,
    ) -> None:
        self.packer_dir = packer_dir
        self.executable = executable
        self.runner = runner or CommandRunner()

    def resolve(self) -> Optional[str]:
        return self.runner.which(self.executable)

    def build(self, target: str, definition: str, log_path: Path | None = None) -> int:
        """Build one definition filtered to ``target``; returns the exit signal."""
        logger.info("Building %s with target %s", definition, target)
        result = self.runner.run(
            [self.executable, "build", f"--only={target}", definition],
            cwd=self.packer_dir,
            log_path=log_path,
        )
        return result.returncode
