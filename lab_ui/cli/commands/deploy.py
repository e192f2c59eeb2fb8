from __future__ import annotations

from typing import Optional, Sequence

import typer

from lab_app.api import DeploymentRequest, DeploymentService, DeployStage
from lab_common.api import HostSpec, LabError, PrerequisiteMissing
from lab_provisioner.api import Backend, HostState
from lab_ui.presenters.deployment import render_deployment, render_error
from lab_ui.wiring.dependencies import UIContext

_STAGE_TITLES = {
    DeployStage.PROBE: "Detecting virtualization backends",
    DeployStage.PREFLIGHT: "Running preflight checks",
    DeployStage.ARTIFACTS: "Preparing boxes",
    DeployStage.PLAN: "Planning topology",
    DeployStage.BRING_UP: "Bringing hosts up",
    DeployStage.VERIFY: "Probing lab services",
}


def register_deploy_command(app: typer.Typer, ctx: UIContext) -> None:
    """Attach the `deploy` command."""

    @app.command("deploy")
    def deploy(
        backend: Optional[Backend] = typer.Option(
            None,
            "--backend",
            "-b",
            help="Virtualization backend (prompted when several are available).",
            case_sensitive=False,
        ),
        packer_path: Optional[str] = typer.Option(
            None, "--packer-path", help="Path to the packer executable."
        ),
        vagrant_path: Optional[str] = typer.Option(
            None, "--vagrant-path", help="Path to the vagrant executable."
        ),
        download: bool = typer.Option(
            False,
            "--download/--build",
            help="Download pre-built boxes instead of building them with Packer.",
        ),
        workstations: int = typer.Option(
            1, "--workstations", "-n", min=1, help="Number of workstation hosts."
        ),
        skip_verify: bool = typer.Option(
            False, "--skip-verify", help="Skip post-deployment service probes."
        ),
    ) -> None:
        """Build or download boxes, then bring the whole lab up."""
        ui = ctx.ui
        try:
            settings = ctx.load_settings(packer_path=packer_path, vagrant_path=vagrant_path)
        except LabError as exc:
            render_error(ui, exc)
            raise typer.Exit(1)

        def choose(backends: Sequence[Backend]) -> Optional[str]:
            names = [b.value for b in backends]
            answer = ui.prompt.choose("Which backend should the lab use?", names)
            if answer is None:
                raise PrerequisiteMissing(
                    f"Several backends are available ({', '.join(names)}) and none was selected",
                    backend="ambiguous",
                    hint=f"Re-run with --backend set to one of: {', '.join(names)}.",
                )
            return answer

        def on_stage(stage: DeployStage) -> None:
            title = _STAGE_TITLES.get(stage)
            if title:
                ui.present.rule(title)

        def on_host_state(host: HostSpec, state: HostState) -> None:
            if state is HostState.PENDING:
                ui.present.info(f"Bringing up {host.name} ({host.static_address or 'dhcp'})...")
            elif state is HostState.FAILED_ONCE:
                ui.present.warning(f"{host.name} failed to start; reloading with --provision.")
            elif state is HostState.UP:
                ui.present.success(f"{host.name} is up.")
            elif state is HostState.FAILED:
                ui.present.error(f"{host.name} failed after a reprovision attempt.")

        service = DeploymentService(
            settings,
            chooser=choose,
            on_stage=on_stage,
            on_host_state=on_host_state,
            warn=ui.present.warning,
        )
        request = DeploymentRequest(
            workstation_count=workstations,
            backend=backend.value if backend else None,
            download=download,
            verify=not skip_verify,
        )
        result = service.deploy(request)
        if not render_deployment(ui, result):
            raise typer.Exit(1)
