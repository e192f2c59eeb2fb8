from __future__ import annotations

import typer

from lab_common.api import LabError
from lab_ui.presenters.deployment import render_error
from lab_ui.presenters.doctor import render_doctor_report
from lab_ui.wiring.dependencies import UIContext


def create_doctor_app(ctx: UIContext) -> typer.Typer:
    """Build the doctor Typer app, wired to the given context."""
    app = typer.Typer(help="Check whether this machine can host the lab.", no_args_is_help=False)

    def _run(check: str) -> None:
        try:
            settings = ctx.load_settings()
        except LabError as exc:
            render_error(ctx.ui, exc)
            raise typer.Exit(1)
        service = ctx.doctor_service(settings)
        report = getattr(service, check)()
        if not render_doctor_report(ctx.ui, report):
            raise typer.Exit(1)

    @app.callback(invoke_without_command=True)
    def doctor_root(typer_ctx: typer.Context) -> None:
        if typer_ctx.invoked_subcommand is None:
            _run("check_all")

    @app.command("tools")
    def doctor_tools() -> None:
        """Check vagrant and packer."""
        _run("check_tools")

    @app.command("backends")
    def doctor_backends() -> None:
        """Check VirtualBox / VMware and their companion plugins."""
        _run("check_backends")

    @app.command("plugins")
    def doctor_plugins() -> None:
        """Check required Vagrant plugins."""
        _run("check_plugins")

    @app.command("disk")
    def doctor_disk() -> None:
        """Check free disk space."""
        _run("check_disk")

    return app
