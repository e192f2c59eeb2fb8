from __future__ import annotations

from typing import Optional

import typer

from lab_common.api import LabError
from lab_provisioner.api import (
    GuestConfigurator,
    TopologyPlanner,
    VagrantManager,
    Verifier,
)
from lab_ui.presenters.deployment import build_probe_table, build_status_table, render_error
from lab_ui.wiring.dependencies import UIContext


def register_lab_commands(app: typer.Typer, ctx: UIContext) -> None:
    """Attach `status` and `verify`."""

    @app.command("status")
    def status() -> None:
        """Show the state of every lab instance."""
        try:
            settings = ctx.load_settings()
        except LabError as exc:
            render_error(ctx.ui, exc)
            raise typer.Exit(1)
        manager = VagrantManager(settings.vagrant_dir, settings.vagrant_path)
        if not manager.resolve():
            ctx.ui.present.error(f"Vagrant not found: {settings.vagrant_path}")
            raise typer.Exit(1)
        machines = manager.status()
        if not machines:
            ctx.ui.present.warning("No instances reported by vagrant status.")
            return
        ctx.ui.tables.show(build_status_table(machines))

    @app.command("verify")
    def verify() -> None:
        """Probe the lab services without deploying anything."""
        try:
            settings = ctx.load_settings()
        except LabError as exc:
            render_error(ctx.ui, exc)
            raise typer.Exit(1)
        results = Verifier(timeout_seconds=settings.probe_timeout_seconds).verify(settings.probes)
        ctx.ui.tables.show(build_probe_table(results))
        down = [r for r in results if not r.reachable]
        if down:
            ctx.ui.present.warning(f"{len(down)} of {len(results)} service(s) did not respond.")
        else:
            ctx.ui.present.success("All services responded.")


def create_guest_app(ctx: UIContext) -> typer.Typer:
    app = typer.Typer(help="Run configured command lists on lab guests.", no_args_is_help=True)

    @app.command("run")
    def guest_run(
        host: str = typer.Argument(..., help="Host name, e.g. dc or workstation-0."),
        workstations: int = typer.Option(
            1, "--workstations", "-n", min=1, help="Workstation count of the deployed lab."
        ),
        command: Optional[list[str]] = typer.Option(
            None, "--command", "-x", help="Command to run instead of the configured steps (repeatable)."
        ),
    ) -> None:
        """Run the guest steps for HOST, stopping at the first failing command."""
        try:
            settings = ctx.load_settings()
            topology = TopologyPlanner(settings).hosts(workstations)
            try:
                spec = topology.get(host)
            except KeyError:
                ctx.ui.present.error(f"Unknown host '{host}' (known: {', '.join(topology.names)})")
                raise typer.Exit(1)
            results = GuestConfigurator(settings).run(spec, command or None)
        except LabError as exc:
            render_error(ctx.ui, exc)
            raise typer.Exit(1)
        if not results:
            ctx.ui.present.warning(f"No guest steps configured for {host}.")
            return
        ctx.ui.present.success(f"{len(results)} step(s) completed on {host}.")

    return app


def create_topology_app(ctx: UIContext) -> typer.Typer:
    app = typer.Typer(help="Inspect or reset the Vagrantfile topology.", no_args_is_help=True)

    @app.command("restore")
    def topology_restore() -> None:
        """Put back the Vagrantfile saved before the last multi-workstation run."""
        try:
            settings = ctx.load_settings()
            restored = TopologyPlanner(settings).store.restore()
        except LabError as exc:
            render_error(ctx.ui, exc)
            raise typer.Exit(1)
        if restored:
            ctx.ui.present.success(f"Restored {settings.vagrantfile}.")
        else:
            ctx.ui.present.info("Nothing to restore; the Vagrantfile is in its original form.")

    @app.command("show")
    def topology_show(
        workstations: int = typer.Option(1, "--workstations", "-n", min=1),
    ) -> None:
        """Print the hosts a deployment would bring up, in order."""
        try:
            settings = ctx.load_settings()
            topology = TopologyPlanner(settings).hosts(workstations)
        except LabError as exc:
            render_error(ctx.ui, exc)
            raise typer.Exit(1)
        for index, host in enumerate(topology, start=1):
            ctx.ui.present.info(f"{index}. {host.name} [{host.role.value}] {host.static_address or '-'}")

    return app
