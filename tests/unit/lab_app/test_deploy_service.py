from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from lab_app.services.deploy_service import DeploymentRequest, DeploymentService, DeployStage
from lab_common.api import (
    ArtifactError,
    HostBringUpFailure,
    PrerequisiteMissing,
    ValidationError,
    ValidationKind,
)
from lab_provisioner.api import ArtifactConfig, Backend, LabSettings, ProbeResult

pytestmark = [pytest.mark.unit_app]

GB = 1024**3
BOX = b"box bytes"
BOX_SUM = hashlib.md5(BOX).hexdigest()
PLUGINS = "vagrant-reload (0.0.1, global)\n"


class FakeVerifier:
    def __init__(self, unreachable=()):
        self.unreachable = set(unreachable)
        self.calls = 0

    def verify(self, probes):
        self.calls += 1
        return [
            ProbeResult(
                endpoint=p.url,
                expected_marker=p.marker,
                reachable=p.name not in self.unreachable,
                name=p.name,
                detail="refused" if p.name in self.unreachable else "HTTP 200",
            )
            for p in probes
        ]


@pytest.fixture
def lab_settings(lab_dir: Path) -> LabSettings:
    checksums = {Backend.VIRTUALBOX: BOX_SUM}
    return LabSettings(
        lab_dir=lab_dir,
        artifacts={
            "windows_2016": ArtifactConfig(build_definition="windows_2016.json", checksums=checksums),
            "windows_10": ArtifactConfig(build_definition="windows_10.json", checksums=checksums),
        },
    )


def _runner(fake_runner_cls, available=("vagrant", "packer", "VBoxManage"), responses=None):
    base = {
        ("--version",): "Vagrant 2.3.7",
        ("status",): "Current machine states:\n\nlogger    not created (virtualbox)\n",
        ("plugin", "list"): PLUGINS,
    }
    base.update(responses or {})
    return fake_runner_cls(available=available, responses=base)


def _service(settings, runner, **kwargs):
    kwargs.setdefault("verifier", FakeVerifier())
    kwargs.setdefault("disk_free", lambda _workdir: [("/", 500 * GB)])
    return DeploymentService(settings, runner=runner, **kwargs)


def _downloads(urls):
    def download(url: str, destination: Path) -> None:
        urls.append(url)
        destination.write_bytes(BOX)

    return download


def test_download_deployment_runs_every_stage(lab_settings, fake_runner_cls) -> None:
    runner = _runner(fake_runner_cls)
    urls: list[str] = []
    stages = []
    states = []
    service = _service(
        lab_settings,
        runner,
        downloader=_downloads(urls),
        on_stage=stages.append,
        on_host_state=lambda host, state: states.append((host.name, state.value)),
    )
    result = service.deploy(DeploymentRequest(workstation_count=2, download=True), run_id="run-x")

    assert result.success, result.error
    assert result.stage is DeployStage.DONE
    assert stages == [
        DeployStage.PROBE,
        DeployStage.PREFLIGHT,
        DeployStage.ARTIFACTS,
        DeployStage.PLAN,
        DeployStage.BRING_UP,
        DeployStage.VERIFY,
        DeployStage.DONE,
    ]
    assert sorted(Path(u).name for u in urls) == [
        "windows_10_virtualbox.box",
        "windows_2016_virtualbox.box",
    ]
    assert [o.host.name for o in result.outcomes] == [
        "logger",
        "dc",
        "wef",
        "workstation-0",
        "workstation-1",
    ]
    assert ("workstation-1", "up") in states
    assert "(0..1).each do |i|" in lab_settings.vagrantfile.read_text()
    assert not any(call[1] == "build" for call in runner.calls)
    assert [p.name for p in result.probes] == ["Splunk", "Fleet", "Microsoft ATA"]
    assert (lab_settings.state_dir / "logs" / "run-x" / "labctl.log").exists()


def test_rerun_with_verified_boxes_downloads_nothing(lab_settings, fake_runner_cls) -> None:
    for name in ("windows_10", "windows_2016"):
        (lab_settings.boxes_dir / f"{name}_virtualbox.box").write_bytes(BOX)
    urls: list[str] = []
    service = _service(lab_settings, _runner(fake_runner_cls), downloader=_downloads(urls))
    assert service.deploy(DeploymentRequest(download=True)).success
    assert urls == []


def test_preflight_failure_stops_before_artifacts_and_hosts(lab_settings, fake_runner_cls) -> None:
    runner = _runner(
        fake_runner_cls,
        responses={("status",): "Current machine states:\n\ndc    running (virtualbox)\n"},
    )
    urls: list[str] = []
    verifier = FakeVerifier()
    before = lab_settings.vagrantfile.read_bytes()
    result = _service(lab_settings, runner, downloader=_downloads(urls), verifier=verifier).deploy(
        DeploymentRequest(workstation_count=3, download=True)
    )
    assert not result.success
    assert result.stage is DeployStage.PREFLIGHT
    assert isinstance(result.error, ValidationError)
    assert result.error.kind is ValidationKind.INSTANCES_ALREADY_EXIST
    assert urls == []
    assert verifier.calls == 0
    assert not any(call[1] in ("up", "reload", "build") for call in runner.calls)
    assert lab_settings.vagrantfile.read_bytes() == before
    run_log_text = next((lab_settings.state_dir / "logs").glob("*/labctl.log")).read_text()
    assert '"type": "ValidationError"' in run_log_text


def test_missing_backend_is_reported(lab_settings, fake_runner_cls) -> None:
    runner = _runner(fake_runner_cls, available=("vagrant",))
    result = _service(lab_settings, runner).deploy(DeploymentRequest())
    assert result.stage is DeployStage.PROBE
    assert isinstance(result.error, PrerequisiteMissing)
    assert runner.calls == []


def test_build_mode_failure_is_an_artifact_error(lab_settings, fake_runner_cls) -> None:
    runner = _runner(
        fake_runner_cls,
        responses={("build", "--only=virtualbox-iso", "windows_10.json"): 1},
    )
    result = _service(lab_settings, runner).deploy(DeploymentRequest(download=False))
    assert result.stage is DeployStage.ARTIFACTS
    assert isinstance(result.error, ArtifactError)
    assert not any(call[1] == "up" for call in runner.calls)


def test_host_failure_skips_rest_and_verification(lab_settings, fake_runner_cls) -> None:
    for name in ("windows_10", "windows_2016"):
        (lab_settings.boxes_dir / f"{name}_virtualbox.box").write_bytes(BOX)
    runner = _runner(
        fake_runner_cls,
        responses={
            ("up", "wef", "--provider", "virtualbox"): 1,
            ("reload", "wef", "--provision"): 1,
        },
    )
    verifier = FakeVerifier()
    result = _service(lab_settings, runner, verifier=verifier).deploy(DeploymentRequest())
    assert isinstance(result.error, HostBringUpFailure)
    assert result.error.host == "wef"
    assert [h.name for h in result.skipped] == ["workstation-0"]
    assert verifier.calls == 0


def test_unreachable_probes_are_warnings(lab_settings, fake_runner_cls) -> None:
    for name in ("windows_10", "windows_2016"):
        (lab_settings.boxes_dir / f"{name}_virtualbox.box").write_bytes(BOX)
    warnings = []
    service = _service(
        lab_settings,
        _runner(fake_runner_cls),
        verifier=FakeVerifier(unreachable={"Fleet"}),
        warn=warnings.append,
    )
    result = service.deploy(DeploymentRequest())
    assert result.success
    assert [p.name for p in result.unreachable_probes] == ["Fleet"]
    assert any("Fleet" in w for w in warnings)


def test_skip_verify(lab_settings, fake_runner_cls) -> None:
    for name in ("windows_10", "windows_2016"):
        (lab_settings.boxes_dir / f"{name}_virtualbox.box").write_bytes(BOX)
    verifier = FakeVerifier()
    result = _service(lab_settings, _runner(fake_runner_cls), verifier=verifier).deploy(
        DeploymentRequest(verify=False)
    )
    assert result.success
    assert verifier.calls == 0
    assert result.probes == []
