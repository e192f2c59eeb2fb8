"""Blocking subprocess execution for external lab tooling."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

from lab_common.api import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Exit signal and captured output of one invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Run external commands with an explicit working directory."""

    def which(self, executable: str) -> Optional[str]:
        """Resolve an executable name or path, returning None when absent."""
        candidate = Path(executable).expanduser()
        if candidate.is_file():
            return str(candidate)
        return shutil.which(executable)

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        log_path: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run ``args`` to completion.

        With ``log_path`` the combined output is appended to that file
        instead of being captured. ``env`` entries override the inherited
        environment.
        """
        argv = tuple(str(arg) for arg in args)
        proc_env = {**os.environ, **env} if env else None
        logger.debug("Running %s (cwd=%s, env=%s)", shlex.join(argv), cwd, dict(env or {}))
        try:
            if log_path is not None:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                with log_path.open("a", encoding="utf-8") as handle:
                    handle.write(f"$ {shlex.join(argv)}\n")
                    handle.flush()
                    proc = subprocess.run(
                        argv,
                        cwd=cwd,
                        stdout=handle,
                        stderr=subprocess.STDOUT,
                        env=proc_env,
                        check=False,
                    )
                return CommandResult(args=argv, returncode=proc.returncode)
            proc = subprocess.run(
                argv,
                cwd=cwd,
                capture_output=True,
                text=True,
                env=proc_env,
                check=False,
            )
        except OSError as exc:
            raise CommandError(
                f"Failed to execute {argv[0]}: {exc}",
                context={"command": shlex.join(argv), "cwd": cwd},
                cause=exc,
            ) from exc
        return CommandResult(
            args=argv,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
