"""
Command-line interface for lab-deployer.

Deploys the detection lab (logger, dc, wef and N workstations) on VirtualBox
or VMware using Vagrant, with boxes built by Packer or downloaded.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from lab_ui.cli.commands.deploy import register_deploy_command
from lab_ui.cli.commands.doctor import create_doctor_app
from lab_ui.cli.commands.lab import (
    create_guest_app,
    create_topology_app,
    register_lab_commands,
)
from lab_ui.wiring.dependencies import UIContext, configure_logging

ctx_store = UIContext()

app = typer.Typer(help="Deploy and verify the detection lab.", no_args_is_help=True)


@app.callback(invoke_without_command=True)
def entry(
    ctx: typer.Context,
    lab_dir: Optional[Path] = typer.Option(
        None,
        "--lab-dir",
        "-C",
        help="Lab checkout holding Vagrant/, Packer/ and Boxes/ (default: current directory).",
        envvar="LAB_DIR",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Lab config file (default: <lab-dir>/labctl.yaml when present).",
    ),
    headless: bool = typer.Option(
        False,
        "--headless",
        help="Force headless output (useful in CI).",
    ),
    debug: bool = typer.Option(False, "--debug", help="Verbose logging."),
    log_json: bool = typer.Option(False, "--log-json", help="Emit logs as JSON."),
) -> None:
    """Global entry point handling logging and the lab directory."""
    configure_logging(debug=debug, json=log_json or None, force=True)
    ctx_store.headless = headless
    ctx_store.lab_dir = lab_dir
    ctx_store.config_path = config

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


register_deploy_command(app, ctx_store)
register_lab_commands(app, ctx_store)
app.add_typer(create_doctor_app(ctx_store), name="doctor")
app.add_typer(create_guest_app(ctx_store), name="guest")
app.add_typer(create_topology_app(ctx_store), name="topology")


def main() -> None:
    """Console script entrypoint (Typer app)."""
    app()


if __name__ == "__main__":
    main()
