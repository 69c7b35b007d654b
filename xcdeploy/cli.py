"""CLI entry point for xcdeploy.

Usage:
    xcdeploy devices
    xcdeploy select
    xcdeploy deploy --project-dir DIR --app-name NAME [--release]
    xcdeploy install <bundle_path> [--bundle-id ID]
    xcdeploy launch <bundle_id> [--udid UDID]
    xcdeploy boot <udid>
    xcdeploy pair
    xcdeploy doctor
    xcdeploy serve
"""

from __future__ import annotations

import logging
import sys

import click

from .config import (
    DEFAULT_BUNDLE_PREFIX,
    ENV_BACKEND,
    ENV_BUNDLE_PREFIX,
    ENV_DEVICE_ID,
    ENV_DEVICE_TYPE,
    DeployConfig,
)
from .errors import DeployError
from .native import BACKENDS
from .output import console, devices_table, err_console, output_error, output_json


def get_deployer(ctx):
    """Build the Deployer once per invocation from the global options."""
    if "deployer" not in ctx.obj:
        from .sdk import Deployer
        ctx.obj["deployer"] = Deployer(ctx.obj["config"])
    return ctx.obj["deployer"]


@click.group()
@click.option("--backend", envvar=ENV_BACKEND, default="auto",
              type=click.Choice(BACKENDS, case_sensitive=False),
              help="Device service backend")
@click.option("--device-id", envvar=ENV_DEVICE_ID, default=None, help="Target device or simulator id")
@click.option("--device-type", envvar=ENV_DEVICE_TYPE, default=None,
              type=click.Choice(["device", "simulator"], case_sensitive=False),
              help="Kind of device named by --device-id")
@click.option("--bundle-prefix", envvar=ENV_BUNDLE_PREFIX, default=DEFAULT_BUNDLE_PREFIX,
              help="Bundle identifier prefix")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def main(ctx, backend: str, device_id: str | None, device_type: str | None,
         bundle_prefix: str, verbose: bool):
    """xcdeploy: install built iOS apps on devices and simulators."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = DeployConfig(
            device_id=device_id,
            device_type=device_type,
            bundle_id_prefix=bundle_prefix,
            backend=backend,
        )
    except DeployError as e:
        output_error(e)


# ------------------------------------------------------------------
# Discovery
# ------------------------------------------------------------------

@main.command()
@click.pass_context
def devices(ctx):
    """List connected devices and booted simulators."""
    try:
        listing = get_deployer(ctx).devices()
    except DeployError as e:
        output_error(e)

    if sys.stdout.isatty():
        console.print(devices_table(listing))
    else:
        output_json(listing)


@main.command(name="select")
@click.pass_context
def select_(ctx):
    """Show which target a deployment would use."""
    try:
        target = get_deployer(ctx).select_target()
    except DeployError as e:
        output_error(e)

    data = {"target": target.kind, "id": target.identifier}
    if target.kind == "device":
        data["device"] = target.device.to_dict()
    output_json(data)


# ------------------------------------------------------------------
# Install / launch
# ------------------------------------------------------------------

@main.command()
@click.option("--project-dir", "-p", required=True, type=click.Path(file_okay=False),
              help="Generated Xcode project directory")
@click.option("--app-name", "-n", required=True, help="App (scheme) name")
@click.option("--release", is_flag=True, help="Use the Release build")
@click.pass_context
def deploy(ctx, project_dir: str, app_name: str, release: bool):
    """Install the built app on the selected target, launching it on simulators."""
    try:
        result = get_deployer(ctx).deploy(
            project_dir, app_name, "release" if release else "debug"
        )
    except DeployError as e:
        output_error(e)

    if result["target"] == "device":
        err_console.print(
            f"[green]{result['bundle_id']} is installed to device {result['id']}. "
            "Please run it.[/green]"
        )
    output_json(result)


@main.command()
@click.argument("bundle_path", type=click.Path())
@click.option("--bundle-id", default=None, help="Bundle id to launch (simulators)")
@click.pass_context
def install(ctx, bundle_path: str, bundle_id: str | None):
    """Install a built .app bundle on the selected target."""
    try:
        output_json(get_deployer(ctx).install(bundle_path, bundle_id))
    except DeployError as e:
        output_error(e)


@main.command()
@click.argument("bundle_id")
@click.option("--udid", default=None, help="Simulator udid (default: selected target)")
@click.pass_context
def launch(ctx, bundle_id: str, udid: str | None):
    """Launch an installed app on a simulator."""
    try:
        output_json(get_deployer(ctx).launch(bundle_id, udid))
    except DeployError as e:
        output_error(e)


# ------------------------------------------------------------------
# Device management
# ------------------------------------------------------------------

@main.command()
@click.argument("udid", required=False)
@click.pass_context
def boot(ctx, udid: str | None):
    """Boot a simulator by udid."""
    try:
        deployer = get_deployer(ctx)
        if udid:
            output_json(deployer.boot(udid))
            return
        simulators = deployer.directory.list_simulator_devices()
    except DeployError as e:
        output_error(e)

    err_console.print("[red]Simulator device id is required. List of available devices:[/red]")
    output_json([s.to_dict() for s in simulators])
    sys.exit(1)


@main.command()
@click.pass_context
def pair(ctx):
    """Pair with a connected device (triggers the trust dialog)."""
    try:
        deployer = get_deployer(ctx)
        device_id = ctx.obj["config"].device_id
        if not device_id:
            connected = deployer.directory.list_physical_devices()
            if not connected:
                raise DeployError("No devices found. Plug in your iPhone.")
            device_id = connected[0].identifier
            err_console.print(f"[dim]Auto-detected device: {device_id}[/dim]")
        output_json(deployer.pair(device_id))
    except DeployError as e:
        output_error(e)


# ------------------------------------------------------------------
# Health check
# ------------------------------------------------------------------

@main.command()
@click.pass_context
def doctor(ctx):
    """Check that everything is working."""
    checks = {}

    err_console.print("Checking Xcode command line tools...", end=" ")
    try:
        from .core.simctl import Simctl
        version = Simctl().version()
        err_console.print("[green]ok[/green]")
        checks["xcode"] = {"status": "ok", "version": version}
    except DeployError as e:
        err_console.print(f"[red]failed: {e}[/red]")
        checks["xcode"] = {"status": "error", "error": str(e)}

    err_console.print("Checking device service...", end=" ")
    try:
        deployer = get_deployer(ctx)
        count = len(deployer.directory.list_physical_devices())
        err_console.print("[green]ok[/green]")
        checks["device_service"] = {
            "status": "ok", "backend": deployer.service.name, "devices": count,
        }
    except Exception as e:
        err_console.print(f"[red]failed: {e}[/red]")
        checks["device_service"] = {"status": "error", "error": str(e)}

    if all(c.get("status") == "ok" for c in checks.values()):
        err_console.print("[bold green]All systems operational![/bold green]")
    else:
        err_console.print("[bold yellow]Some checks failed. See above.[/bold yellow]")

    output_json(checks)


# ------------------------------------------------------------------
# MCP Server
# ------------------------------------------------------------------

@main.command()
@click.pass_context
def serve(ctx):
    """Start an MCP server exposing deployment as tools."""
    err_console.print("[bold]Starting xcdeploy MCP server...[/bold]")
    from .mcp.server import run_server
    run_server(ctx.obj["config"])


if __name__ == "__main__":
    main()
