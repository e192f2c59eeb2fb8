"""Make sure every required box exists locally and is verified."""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Iterable, List
from urllib import error, request

from lab_common.api import ArtifactError, ArtifactFailure

from lab_provisioner.models.settings import LabSettings
from lab_provisioner.models.types import ArtifactRecord, ProviderSelection
from lab_provisioner.tools.packer import PackerBuilder

logger = logging.getLogger(__name__)

_CHUNK = 1024 * 1024

Downloader = Callable[[str, Path], None]


def md5sum(path: Path) -> str:
    digest = hashlib.md5()  # nosec B324 - integrity check against published sums
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


def urllib_download(url: str, destination: Path, *, timeout: float = 60.0) -> None:
    """Stream ``url`` into ``destination`` through a temp file in the same directory."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{destination.name}.", dir=destination.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            with request.urlopen(url, timeout=timeout) as response:  # nosec B310
                shutil.copyfileobj(response, handle, _CHUNK)
        os.replace(tmp_path, destination)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class ArtifactProvider:
    """Build or download boxes into the canonical boxes directory."""

    def __init__(
        self,
        settings: LabSettings,
        selection: ProviderSelection,
        builder: PackerBuilder,
        *,
        download: bool = False,
        downloader: Downloader | None = None,
        log_dir: Path | None = None,
    ) -> None:
        self.settings = settings
        self.selection = selection
        self.builder = builder
        self.download_mode = download
        self._downloader = downloader or (
            lambda url, dest: urllib_download(
                url, dest, timeout=settings.download_timeout_seconds
            )
        )
        self.log_dir = log_dir
        self.records: Dict[str, ArtifactRecord] = {}

    @property
    def boxes_dir(self) -> Path:
        return self.settings.boxes_dir

    def ensure(self, artifact_names: Iterable[str]) -> List[ArtifactRecord]:
        """Acquire and verify each artifact; raises ArtifactError on the first failure."""
        self.boxes_dir.mkdir(parents=True, exist_ok=True)
        records = []
        for name in sorted(set(artifact_names)):
            record = self._record_for(name)
            if record.verified and record.local_path and record.local_path.exists():
                logger.debug("Artifact %s already verified", name)
            elif self.download_mode:
                self._download(record)
            else:
                self._build(record)
            records.append(record)
        return records

    def _record_for(self, name: str) -> ArtifactRecord:
        if name in self.records:
            return self.records[name]
        config = self.settings.artifacts.get(name)
        if config is None:
            raise ArtifactError(
                f"Unknown artifact '{name}'",
                name=name,
                reason=ArtifactFailure.UNKNOWN_ARTIFACT,
                hint="Add it to the artifacts section of the lab config.",
            )
        checksum = config.checksums.get(self.selection.backend, "")
        if self.download_mode and not checksum:
            raise ArtifactError(
                f"No checksum for {name} on {self.selection.provider}",
                name=name,
                reason=ArtifactFailure.UNKNOWN_ARTIFACT,
                hint="Add the expected MD5 to the artifacts section of the lab config.",
            )
        record = ArtifactRecord(name=name, expected_checksum=checksum)
        self.records[name] = record
        return record

    def _box_path(self, name: str) -> Path:
        return self.boxes_dir / self.selection.box_name(name)

    def _build(self, record: ArtifactRecord) -> None:
        target = self._box_path(record.name)
        if target.exists():
            logger.info("%s already exists; skipping build", target.name)
        else:
            definition = self.settings.artifacts[record.name].build_definition
            log_path = self.log_dir / f"packer-{record.name}.log" if self.log_dir else None
            exit_signal = self.builder.build(
                self.selection.backend.builder_target, definition, log_path=log_path
            )
            if exit_signal != 0:
                raise ArtifactError(
                    f"Packer failed to build {record.name} (exit {exit_signal})",
                    name=record.name,
                    reason=ArtifactFailure.BUILD_FAILED,
                    hint="Check the Packer log, or re-run with --download to fetch pre-built boxes.",
                    context={"exit_signal": exit_signal},
                )
            self._relocate_built_boxes()
            if not target.exists():
                raise ArtifactError(
                    f"{target.name} not found in {self.boxes_dir} after the build",
                    name=record.name,
                    reason=ArtifactFailure.MISSING_AFTER_BUILD,
                    hint="Verify the build definition's output path.",
                )
        record.local_path = target
        record.verified = True

    def _relocate_built_boxes(self) -> None:
        for produced in sorted(self.settings.packer_dir.glob("*.box")):
            destination = self.boxes_dir / produced.name
            logger.info("Moving %s to %s", produced.name, self.boxes_dir)
            shutil.move(str(produced), str(destination))

    def _download(self, record: ArtifactRecord) -> None:
        target = self._box_path(record.name)
        if target.exists() and md5sum(target) == record.expected_checksum:
            logger.info("%s is present with a matching checksum; skipping download", target.name)
        else:
            if target.exists():
                logger.warning("%s checksum mismatch; downloading a fresh copy", target.name)
            url = f"{self.settings.artifact_base_url}/{target.name}"
            logger.info("Downloading %s", url)
            try:
                self._downloader(url, target)
            except (error.URLError, OSError) as exc:
                raise ArtifactError(
                    f"Failed to download {url}: {exc}",
                    name=record.name,
                    reason=ArtifactFailure.DOWNLOAD_FAILED,
                    hint="Check network access, or build the box locally with --build.",
                    cause=exc,
                ) from exc
            actual = md5sum(target) if target.exists() else ""
            if actual != record.expected_checksum:
                raise ArtifactError(
                    f"Checksum mismatch for {target.name}: expected "
                    f"{record.expected_checksum}, got {actual or 'nothing'}",
                    name=record.name,
                    reason=ArtifactFailure.CHECKSUM_MISMATCH,
                    hint=f"Delete {target} and re-run, or build the box locally with --build.",
                    context={"expected": record.expected_checksum, "actual": actual},
                )
        record.local_path = target
        record.verified = True
