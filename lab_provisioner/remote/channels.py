"""Ordered command execution on lab guests over SSH or WinRM."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from fabric import Connection
from invoke.exceptions import UnexpectedExit
from paramiko.ssh_exception import SSHException
import winrm
from winrm.exceptions import WinRMError

from lab_common.api import RemoteExecutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepResult:
    """Outcome of one remote command."""

    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""


class RemoteChannel(Protocol):
    def execute(self, command: str) -> StepResult: ...

    def close(self) -> None: ...


def run_steps(channel: RemoteChannel, host: str, commands: Sequence[str]) -> List[StepResult]:
    """Run ``commands`` in order, stopping at the first non-zero exit."""
    results: List[StepResult] = []
    try:
        for index, command in enumerate(commands, start=1):
            logger.info("[%s] step %d/%d: %s", host, index, len(commands), command)
            result = channel.execute(command)
            results.append(result)
            if result.exit_code != 0:
                raise RemoteExecutionError(
                    f"Step {index} on {host} exited with {result.exit_code}: {command}",
                    context={
                        "host": host,
                        "step": index,
                        "exit_code": result.exit_code,
                        "stderr": result.stderr[-2000:],
                    },
                    hint=f"Fix the command or the guest, then re-run `labctl guest run {host}`.",
                )
    finally:
        channel.close()
    return results


class SSHChannel:
    """Key-authenticated SSH transport for Linux guests (Fabric)."""

    def __init__(
        self,
        host: str,
        user: str,
        key_path: Optional[Path] = None,
        port: int = 22,
        connect_timeout: int = 30,
    ) -> None:
        self.host = host
        self.user = user
        self.key_path = key_path
        self.port = port
        self.connect_timeout = connect_timeout
        self._connection: Optional[Connection] = None

    def _get_connection(self) -> Connection:
        if self._connection is None:
            connect_kwargs: dict = {"banner_timeout": self.connect_timeout}
            if self.key_path is not None:
                connect_kwargs["key_filename"] = str(Path(self.key_path).expanduser())
            self._connection = Connection(
                host=self.host,
                user=self.user,
                port=self.port,
                connect_timeout=self.connect_timeout,
                connect_kwargs=connect_kwargs,
            )
        return self._connection

    def execute(self, command: str) -> StepResult:
        try:
            result = self._get_connection().run(command, hide=True, warn=True)
        except UnexpectedExit as exc:
            result = exc.result
        except (SSHException, OSError) as exc:
            raise RemoteExecutionError(
                f"SSH connection to {self.host} failed: {exc}",
                context={"host": self.host, "port": self.port},
                hint="Check that the guest is up and the SSH key is authorized.",
                cause=exc,
            ) from exc
        return StepResult(
            command=command,
            exit_code=result.exited,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None


class WinRMChannel:
    """Password-authenticated WinRM transport for Windows guests (pywinrm)."""

    def __init__(
        self,
        host: str,
        user: str,
        password: str,
        port: int = 5986,
        transport: str = "ntlm",
        use_powershell: bool = True,
    ) -> None:
        self.host = host
        self.user = user
        self.password = password
        self.port = port
        self.transport = transport
        self.use_powershell = use_powershell
        self._session: Optional[winrm.Session] = None

    def _get_session(self) -> winrm.Session:
        if self._session is None:
            scheme = "https" if self.port == 5986 else "http"
            self._session = winrm.Session(
                f"{scheme}://{self.host}:{self.port}/wsman",
                auth=(self.user, self.password),
                transport=self.transport,
                server_cert_validation="ignore",
            )
        return self._session

    def execute(self, command: str) -> StepResult:
        session = self._get_session()
        try:
            if self.use_powershell:
                response = session.run_ps(command)
            else:
                response = session.run_cmd(command)
        except (WinRMError, OSError) as exc:
            raise RemoteExecutionError(
                f"WinRM connection to {self.host} failed: {exc}",
                context={"host": self.host, "port": self.port},
                hint="Check that the guest is up and WinRM is listening.",
                cause=exc,
            ) from exc
        return StepResult(
            command=command,
            exit_code=response.status_code,
            stdout=response.std_out.decode("utf-8", errors="replace"),
            stderr=response.std_err.decode("utf-8", errors="replace"),
        )

    def close(self) -> None:
        self._session = None
