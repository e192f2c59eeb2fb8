from __future__ import annotations

import inspect
from pathlib import Path

import pytest
from typer.testing import CliRunner

import lab_ui.cli.commands.deploy as deploy_cmd
import lab_ui.cli.commands.lab as lab_cmd
import lab_ui.cli.main as cli_main
from lab_app.api import DeploymentResult, DeployStage, DoctorService
from lab_common.api import HostRole, HostSpec, PrerequisiteMissing, ValidationError, ValidationKind
from lab_provisioner.api import (
    Backend,
    BuildOutcome,
    BuildStatus,
    HostState,
    ProbeResult,
    ProviderSelection,
    VagrantManager,
)
from lab_ui.tui.headless import HeadlessUI

pytestmark = [pytest.mark.unit_ui]

runner = CliRunner()


@pytest.fixture
def ui(monkeypatch):
    headless = HeadlessUI()
    for name in ("LAB_VAGRANT_PATH", "LAB_PACKER_PATH", "LAB_ARTIFACT_BASE_URL", "LAB_MIN_FREE_DISK_GB"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(cli_main, "configure_logging", lambda **_kwargs: None)
    monkeypatch.setattr(cli_main.ctx_store, "_ui", headless)
    monkeypatch.setattr(cli_main.ctx_store, "_config_service", None)
    return headless


class RecordingService:
    """Stands in for DeploymentService and returns a canned result."""

    instances: list["RecordingService"] = []
    result: DeploymentResult

    def __init__(self, settings, **kwargs):
        self.settings = settings
        self.kwargs = kwargs
        self.requests = []
        RecordingService.instances.append(self)

    def deploy(self, request):
        self.requests.append(request)
        return RecordingService.result


@pytest.fixture
def fake_service(monkeypatch):
    RecordingService.instances = []
    monkeypatch.setattr(deploy_cmd, "DeploymentService", RecordingService)
    return RecordingService


def _ok_result() -> DeploymentResult:
    dc = HostSpec("dc", HostRole.DOMAIN_CONTROLLER, "192.168.38.102")
    return DeploymentResult(
        run_id="run-1",
        stage=DeployStage.DONE,
        selection=ProviderSelection(Backend.VIRTUALBOX),
        outcomes=[BuildOutcome(host=dc, attempts=2, status=BuildStatus.SUCCESS, exit_signal=0)],
        probes=[ProbeResult(endpoint="https://wef", expected_marker="HTTP 401", reachable=False, name="ATA")],
    )


def test_deploy_passes_options_through(ui, fake_service, lab_dir: Path) -> None:
    fake_service.result = _ok_result()
    result = runner.invoke(
        cli_main.app,
        [
            "--lab-dir",
            str(lab_dir),
            "deploy",
            "--backend",
            "vmware_desktop",
            "--download",
            "--workstations",
            "3",
            "--packer-path",
            "/opt/packer",
            "--skip-verify",
        ],
    )
    assert result.exit_code == 0, result.output
    service = fake_service.instances[0]
    request = service.requests[0]
    assert request.workstation_count == 3
    assert request.backend == "vmware_desktop"
    assert request.download is True
    assert request.verify is False
    assert service.settings.packer_path == "/opt/packer"
    assert service.settings.vagrant_path == "vagrant"
    assert ui.recorded_tables[0].model.title == "Hosts"
    assert ui.recorded_tables[0].model.rows[0][:4] == ["dc", "192.168.38.102", "success", "2"]
    assert any("Lab deployed on virtualbox" in m for m in ui.messages("success"))
    assert any("did not respond" in m for m in ui.messages("warning"))


def test_deploy_failure_exits_non_zero_with_hint(ui, fake_service, lab_dir: Path) -> None:
    fake_service.result = DeploymentResult(
        run_id="run-2",
        stage=DeployStage.PREFLIGHT,
        error=ValidationError(
            "Existing lab instances found: dc (running)",
            kind=ValidationKind.INSTANCES_ALREADY_EXIST,
            hint="vagrant destroy -f",
        ),
    )
    result = runner.invoke(cli_main.app, ["--lab-dir", str(lab_dir), "deploy"])
    assert result.exit_code == 1
    assert "Deployment stopped during preflight." in ui.messages("error")
    assert "Hint: vagrant destroy -f" in ui.messages("info")
    assert fake_service.instances[0].requests[0].download is False


def test_deploy_rejects_zero_workstations(ui, fake_service, lab_dir: Path) -> None:
    result = runner.invoke(cli_main.app, ["--lab-dir", str(lab_dir), "deploy", "-n", "0"])
    assert result.exit_code != 0
    assert fake_service.instances == []


def test_deploy_chooser_and_host_callbacks(ui, fake_service, lab_dir: Path) -> None:
    fake_service.result = _ok_result()
    ui.next_choices = ["vmware_desktop"]
    result = runner.invoke(cli_main.app, ["--lab-dir", str(lab_dir), "deploy"])
    assert result.exit_code == 0, result.output
    kwargs = fake_service.instances[0].kwargs
    assert kwargs["chooser"]([Backend.VIRTUALBOX, Backend.VMWARE_DESKTOP]) == "vmware_desktop"

    kwargs["on_stage"](DeployStage.BRING_UP)
    host = HostSpec("wef", HostRole.FORWARDER, "192.168.38.103")
    kwargs["on_host_state"](host, HostState.FAILED_ONCE)
    assert "RULE: Bringing hosts up" in ui.recorded_messages
    assert any("reloading with --provision" in m for m in ui.messages("warning"))


def test_unanswered_backend_prompt_raises(ui, fake_service, lab_dir: Path) -> None:
    fake_service.result = _ok_result()
    runner.invoke(cli_main.app, ["--lab-dir", str(lab_dir), "deploy"])
    chooser = fake_service.instances[0].kwargs["chooser"]
    with pytest.raises(PrerequisiteMissing):
        chooser([Backend.VIRTUALBOX, Backend.VMWARE_DESKTOP])


def test_bad_config_is_reported(ui, lab_dir: Path) -> None:
    (lab_dir / "labctl.yaml").write_text("not_a_setting: true\n")
    result = runner.invoke(cli_main.app, ["--lab-dir", str(lab_dir), "deploy"])
    assert result.exit_code == 1
    assert any("Invalid lab configuration" in m for m in ui.messages("error"))


def test_doctor_renders_tables(ui, lab_dir: Path, fake_runner_cls, monkeypatch) -> None:
    fake = fake_runner_cls(
        available=["vagrant", "VBoxManage"],
        responses={("plugin", "list"): "vagrant-reload (0.0.1, global)\n", ("--version",): "2.4.1"},
    )
    monkeypatch.setattr(
        cli_main.ctx_store,
        "doctor_service",
        lambda settings: DoctorService(settings, runner=fake, disk_free=lambda _w: [("/", 500 * 1024**3)]),
    )
    result = runner.invoke(cli_main.app, ["--lab-dir", str(lab_dir), "doctor"])
    assert result.exit_code == 0, result.output
    titles = [t.model.title for t in ui.recorded_tables]
    assert titles[:2] == ["Tools", "Backends"]
    assert "All required checks passed." in ui.messages("success")


def test_doctor_tools_fails_without_vagrant(ui, lab_dir: Path, fake_runner_cls, monkeypatch) -> None:
    fake = fake_runner_cls(available=[])
    monkeypatch.setattr(cli_main.ctx_store, "doctor_service", lambda s: DoctorService(s, runner=fake))
    result = runner.invoke(cli_main.app, ["--lab-dir", str(lab_dir), "doctor", "tools"])
    assert result.exit_code == 1
    assert "Found 1 failures." in ui.messages("error")


def test_status_lists_instances(ui, lab_dir: Path, fake_runner_cls, monkeypatch) -> None:
    fake = fake_runner_cls(
        available=["vagrant"],
        responses={("status",): "Current machine states:\n\ndc    running (virtualbox)\n"},
    )
    monkeypatch.setattr(
        lab_cmd,
        "VagrantManager",
        lambda vagrant_dir, executable: VagrantManager(vagrant_dir, executable, runner=fake),
    )
    result = runner.invoke(cli_main.app, ["--lab-dir", str(lab_dir), "status"])
    assert result.exit_code == 0, result.output
    assert ui.recorded_tables[0].model.rows == [["dc", "running", "virtualbox"]]


def test_topology_show_and_restore(ui, lab_dir: Path) -> None:
    result = runner.invoke(cli_main.app, ["--lab-dir", str(lab_dir), "topology", "show", "-n", "2"])
    assert result.exit_code == 0, result.output
    assert ui.messages("info")[-1] == "5. workstation-1 [workstation] 192.168.38.111"

    result = runner.invoke(cli_main.app, ["--lab-dir", str(lab_dir), "topology", "restore"])
    assert result.exit_code == 0
    assert any("Nothing to restore" in m for m in ui.messages("info"))


def test_guest_run_unknown_host(ui, lab_dir: Path) -> None:
    result = runner.invoke(cli_main.app, ["--lab-dir", str(lab_dir), "guest", "run", "mail"])
    assert result.exit_code == 1
    assert any("Unknown host 'mail'" in m for m in ui.messages("error"))


def test_guest_run_without_steps_warns(ui, lab_dir: Path) -> None:
    result = runner.invoke(cli_main.app, ["--lab-dir", str(lab_dir), "guest", "run", "dc"])
    assert result.exit_code == 0, result.output
    assert "No guest steps configured for dc." in ui.messages("warning")


def test_cli_main_module_is_importable_by_path() -> None:
    assert inspect.ismodule(cli_main)
    assert callable(cli_main.main)
