"""Render deployment results."""

from __future__ import annotations

from lab_app.api import DeploymentResult
from lab_common.api import LabError
from lab_provisioner.api import MachineStatus, ProbeResult
from lab_ui.tui.models import TableModel


def build_hosts_table(result: DeploymentResult) -> TableModel:
    rows = [
        [
            outcome.host.name,
            outcome.host.static_address or "-",
            outcome.status.value,
            str(outcome.attempts),
            str(outcome.exit_signal),
        ]
        for outcome in result.outcomes
    ]
    rows.extend([host.name, host.static_address or "-", "not attempted", "0", "-"] for host in result.skipped)
    return TableModel(
        title="Hosts",
        columns=["Host", "Address", "Status", "Attempts", "Exit"],
        rows=rows,
    )


def build_probe_table(probes: list[ProbeResult]) -> TableModel:
    rows = [
        [probe.name, probe.endpoint, "✓" if probe.reachable else "✗", probe.detail]
        for probe in probes
    ]
    return TableModel(title="Service Probes", columns=["Service", "Endpoint", "Reachable", "Detail"], rows=rows)


def build_status_table(machines: list[MachineStatus]) -> TableModel:
    rows = [[m.name, m.state, m.provider or "-"] for m in machines]
    return TableModel(title="Lab Instances", columns=["Host", "State", "Provider"], rows=rows)


def render_error(ui, error: LabError) -> None:
    ui.present.error(str(error))
    if error.hint:
        ui.present.info(f"Hint: {error.hint}")


def render_deployment(ui, result: DeploymentResult) -> bool:
    """Render the run summary. Returns True when no fatal condition was hit."""
    ui.present.rule(f"Run {result.run_id}")
    if result.outcomes or result.skipped:
        ui.tables.show(build_hosts_table(result))
    if result.probes:
        ui.tables.show(build_probe_table(result.probes))

    if result.error is not None:
        ui.present.error(f"Deployment stopped during {result.stage.value}.")
        render_error(ui, result.error)
        return False

    backend = result.selection.provider if result.selection else "unknown"
    ui.present.success(f"Lab deployed on {backend} ({len(result.outcomes)} hosts).")
    if result.unreachable_probes:
        ui.present.warning(
            f"{len(result.unreachable_probes)} service probe(s) did not respond; "
            "services may still be starting."
        )
    return True
