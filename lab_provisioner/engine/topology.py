"""Plan the host list and keep the Vagrantfile in step with it.

The Vagrantfile ships with a single workstation definition. For more than
one workstation the definition block is rewritten into a Ruby range loop.
The original bytes are snapshotted under the run id before any change and
restored at the start of the next plan, so a description is always either
pristine or freshly rewritten for the current run.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import shutil
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional

from lab_common.api import ConfigurationError, HostRole, HostSpec, Topology

from lab_provisioner.models.settings import LabSettings

logger = logging.getLogger(__name__)

STATE_FILE = "topology.json"
SNAPSHOT_DIR = "snapshots"
MAX_HOST_OCTET = 254

INFRASTRUCTURE = (
    ("logger", HostRole.LOGGER),
    ("dc", HostRole.DOMAIN_CONTROLLER),
    ("wef", HostRole.FORWARDER),
)


def atomic_write(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` via a temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        if path.exists():
            shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass
class SnapshotState:
    run_id: str
    snapshot: str
    original_sha256: str
    rewritten_sha256: str
    workstation_count: int


class TopologyStateStore:
    """Versioned snapshots of the topology description."""

    def __init__(self, description: Path, state_dir: Path) -> None:
        self.description = description
        self.state_dir = state_dir

    @property
    def state_path(self) -> Path:
        return self.state_dir / STATE_FILE

    def load(self) -> Optional[SnapshotState]:
        if not self.state_path.exists():
            return None
        try:
            data = json.loads(self.state_path.read_text(encoding="utf-8"))
            return SnapshotState(**data)
        except (ValueError, TypeError) as exc:
            raise ConfigurationError(
                f"Corrupt topology state file {self.state_path}: {exc}",
                hint="Restore the Vagrantfile from version control and delete the state file.",
                cause=exc,
            ) from exc

    def snapshot(self, run_id: str, original: bytes, rewritten: bytes, count: int) -> SnapshotState:
        """Keep ``original`` addressable by ``run_id``, dropping older snapshots."""
        snapshots = self.state_dir / SNAPSHOT_DIR
        target = snapshots / run_id / self.description.name
        atomic_write(target, original)
        for stale in snapshots.iterdir():
            if stale.is_dir() and stale.name != run_id:
                shutil.rmtree(stale, ignore_errors=True)
        state = SnapshotState(
            run_id=run_id,
            snapshot=str(target),
            original_sha256=_sha256(original),
            rewritten_sha256=_sha256(rewritten),
            workstation_count=count,
        )
        atomic_write(self.state_path, json.dumps(asdict(state), indent=2).encode("utf-8"))
        return state

    def restore(self) -> bool:
        """Put back the snapshotted original, if any. Returns True when restored."""
        state = self.load()
        if state is None:
            return False
        snapshot = Path(state.snapshot)
        if not snapshot.exists():
            raise ConfigurationError(
                f"Topology snapshot {snapshot} from {state.run_id} is missing",
                hint="Restore the Vagrantfile from version control and delete the state file.",
            )
        original = snapshot.read_bytes()
        if _sha256(original) != state.original_sha256:
            raise ConfigurationError(
                f"Topology snapshot {snapshot} does not match its recorded checksum",
                hint="Restore the Vagrantfile from version control and delete the state file.",
            )
        if self.description.exists():
            current = _sha256(self.description.read_bytes())
            if current not in (state.rewritten_sha256, state.original_sha256):
                logger.warning(
                    "%s changed since run %s; restoring the snapshot anyway",
                    self.description.name,
                    state.run_id,
                )
        atomic_write(self.description, original)
        self.state_path.unlink()
        shutil.rmtree(snapshot.parent, ignore_errors=True)
        logger.info("Restored %s from run %s", self.description.name, state.run_id)
        return True


def rewrite_workstations(
    text: str,
    *,
    template_name: str,
    template_address: str,
    count: int,
    network_prefix: str,
    base_octet: int,
) -> str:
    """Turn the single workstation ``config.vm.define`` block into a range loop."""
    lines = text.splitlines(keepends=True)
    define = re.compile(
        r"^(?P<indent>\s*)config\.vm\.define\s+[\"']" + re.escape(template_name) + r"[\"']"
    )
    start = next((i for i, line in enumerate(lines) if define.match(line)), None)
    if start is None:
        raise ConfigurationError(
            f"No config.vm.define block for '{template_name}' in the Vagrantfile",
            hint="Set workstation_template_name to the workstation defined in the Vagrantfile.",
        )
    indent = define.match(lines[start]).group("indent")
    end = next(
        (
            i
            for i in range(start + 1, len(lines))
            if lines[i].rstrip("\r\n") == f"{indent}end"
        ),
        None,
    )
    if end is None:
        raise ConfigurationError(
            f"Unterminated config.vm.define block for '{template_name}'",
        )

    newline = "\r\n" if lines[start].endswith("\r\n") else "\n"
    name_literal = re.compile(r"([\"'])" + re.escape(template_name) + r"\1")
    address_literal = re.compile(r"([\"'])" + re.escape(template_address) + r"\1")
    body: List[str] = []
    for line in lines[start : end + 1]:
        line = name_literal.sub('"' + _ruby_name(template_name) + '"', line)
        line = address_literal.sub(f'"{network_prefix}.#{{{base_octet} + i}}"', line)
        body.append(f"  {line}" if line.strip() else line)
    loop = [f"{indent}(0..{count - 1}).each do |i|{newline}", *body, f"{indent}end{newline}"]
    return "".join(lines[:start] + loop + lines[end + 1 :])


def _ruby_name(template_name: str) -> str:
    stem = re.sub(r"-?\d+$", "", template_name)
    return f"{stem}-#{{i}}"


class TopologyPlanner:
    """Compute the host list and keep the topology description consistent."""

    def __init__(self, settings: LabSettings, store: TopologyStateStore | None = None) -> None:
        self.settings = settings
        self.store = store or TopologyStateStore(settings.vagrantfile, settings.state_dir)

    def hosts(self, workstation_count: int) -> Topology:
        if workstation_count < 1:
            raise ConfigurationError(
                f"workstation_count must be at least 1 (got {workstation_count})",
                hint="Re-run with --workstations 1 or more.",
            )
        max_count = MAX_HOST_OCTET - self.settings.host_octets[HostRole.WORKSTATION] + 1
        if workstation_count > max_count:
            raise ConfigurationError(
                f"workstation_count {workstation_count} exceeds the {max_count} "
                f"addresses left in {self.settings.network_prefix}.0/24",
                hint="Lower --workstations or the workstation host octet.",
            )
        hosts = [
            HostSpec(name=name, role=role, static_address=self.settings.address_for(role))
            for name, role in INFRASTRUCTURE
        ]
        hosts.extend(
            HostSpec(
                name=f"workstation-{index}",
                role=HostRole.WORKSTATION,
                static_address=self.settings.address_for(HostRole.WORKSTATION, index),
            )
            for index in range(workstation_count)
        )
        return Topology.from_hosts(hosts)

    def plan(self, workstation_count: int, run_id: str) -> Topology:
        """Return the topology and rewrite the description when it has to grow."""
        topology = self.hosts(workstation_count)
        self.store.restore()
        if workstation_count == 1:
            return topology

        description = self.settings.vagrantfile
        if not description.exists():
            raise ConfigurationError(
                f"Vagrantfile not found: {description}",
                hint="Pass --lab-dir pointing at the lab checkout.",
            )
        original = description.read_bytes()
        rewritten = rewrite_workstations(
            original.decode("utf-8"),
            template_name=self.settings.workstation_template_name,
            template_address=self.settings.address_for(HostRole.WORKSTATION),
            count=workstation_count,
            network_prefix=self.settings.network_prefix,
            base_octet=self.settings.host_octets[HostRole.WORKSTATION],
        ).encode("utf-8")
        self.store.snapshot(run_id, original, rewritten, workstation_count)
        try:
            atomic_write(description, rewritten)
        except OSError:
            self.store.restore()
            raise
        logger.info(
            "Rewrote %s for %d workstations (snapshot %s)",
            description.name,
            workstation_count,
            run_id,
        )
        return topology
