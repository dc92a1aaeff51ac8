"""
CLI commands for apps installed on a jailbroken device.

This module provides commands for listing installed apps and for
inspecting which binaries of an app are still encrypted.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from appcrypt.cli.commands.scan import (
    get_console,
    print_classification,
    print_diagnostics,
)
from appcrypt.config import Config, get_config
from appcrypt.core.sync import BundleSync
from appcrypt.device.frida_client import FridaClient
from appcrypt.exceptions import (
    AppcryptError,
    FridaNotInstalledError,
    ProcessNotFoundError,
)

logger = logging.getLogger(__name__)


def get_config_from(ctx: click.Context) -> Config:
    """Get config from context or load the global one."""
    if ctx.obj and "config" in ctx.obj:
        return ctx.obj["config"]
    return get_config()


@click.group()
def apps() -> None:
    """
    Work with apps installed on a jailbroken device.

    Requires frida-server running on the device. Inspection also
    needs SSH access (by default through iproxy on localhost:2222).

    Examples:

        List installed apps:
        $ appcrypt apps list

        Find the encrypted binaries of an app:
        $ appcrypt apps inspect com.example.App
    """
    pass


@apps.command("list")
@click.option("--device", "-d", "device_id", help="Frida device ID (default: first USB device).")
@click.option("--host", help="Frida remote host (e.g., localhost:27042).")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(
    ctx: click.Context,
    device_id: Optional[str],
    host: Optional[str],
    as_json: bool,
) -> None:
    """
    List installed applications.

    Examples:

        $ appcrypt apps list
        $ appcrypt apps list --host localhost:27042 --json
    """
    console = get_console(ctx)
    config = get_config_from(ctx)

    try:
        with console.status("[bold blue]Loading apps..."):
            with FridaClient(device_id=device_id, host=host or config.frida_host) as client:
                applications = client.list_applications()

        applications.sort(key=lambda app: app.name.lower())

        if as_json:
            console.print_json(json.dumps([app.to_dict() for app in applications]))
            return

        if not applications:
            console.print("[dim]No apps found.[/dim]")
            return

        table = Table(title="Installed Apps")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Bundle ID", style="dim")
        table.add_column("Version", justify="right")
        table.add_column("Build", justify="right")
        table.add_column("PID", justify="right")

        for app in applications:
            table.add_row(
                app.name,
                app.identifier,
                app.version,
                app.build,
                str(app.pid) if app.pid else "-",
            )

        console.print(table)
        console.print(f"\n[dim]{len(applications)} app(s) found[/dim]")

    except FridaNotInstalledError:
        console.print(
            "[red]Error:[/red] Frida not installed.\n"
            "Install with: [cyan]pip install frida[/cyan]"
        )
        raise SystemExit(1)

    except AppcryptError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)


@apps.command("inspect")
@click.argument("bundle_id")
@click.option("--device", "-d", "device_id", help="Frida device ID (default: first USB device).")
@click.option("--host", help="Frida remote host (e.g., localhost:27042).")
@click.option("--ssh-host", help="SSH host for file transfer.")
@click.option("--ssh-port", type=int, help="SSH port.")
@click.option("--ssh-user", help="SSH username.")
@click.option("--ssh-password", help="SSH password.")
@click.option(
    "--work-dir",
    type=click.Path(file_okay=False),
    help="Directory the app bundle is copied into.",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def inspect_cmd(
    ctx: click.Context,
    bundle_id: str,
    device_id: Optional[str],
    host: Optional[str],
    ssh_host: Optional[str],
    ssh_port: Optional[int],
    ssh_user: Optional[str],
    ssh_password: Optional[str],
    work_dir: Optional[str],
    as_json: bool,
) -> None:
    """
    Find the encrypted binaries of an installed app.

    Copies the app bundle from the device, removes metadata such as
    SC_Info and _CodeSignature, scans the copy for Mach-O binaries that
    are still encrypted, and groups them by main app and app extension.

    REQUIREMENTS:
    - Jailbroken 64-bit iOS device with frida-server running
    - SSH access to the device
    - The chronod service running on the device

    Examples:

        $ appcrypt apps inspect com.example.App
        $ appcrypt apps inspect com.example.App --ssh-port 22 --ssh-user root
    """
    console = get_console(ctx)
    config = get_config_from(ctx)

    if ssh_host:
        config.ssh.host = ssh_host
    if ssh_port:
        config.ssh.port = ssh_port
    if ssh_user:
        config.ssh.username = ssh_user
    if ssh_password:
        config.ssh.password = ssh_password

    try:
        with console.status(f"[bold blue]Inspecting {bundle_id}..."):
            with FridaClient(device_id=device_id, host=host or config.frida_host) as client:
                report = BundleSync(client, config).run(
                    bundle_id,
                    work_dir=Path(work_dir) if work_dir else None,
                )

        if as_json:
            console.print_json(json.dumps(report.to_dict()))
            return

        app = report.application
        console.print(
            Panel(
                f"[bold]Bundle ID:[/bold] {app.identifier}\n"
                f"[bold]Version:[/bold] {app.version} ({app.build})\n"
                f"[bold]Main Executable:[/bold] {report.main_executable}\n"
                f"[bold]Extensions:[/bold] {len(report.sub_bundles)}\n"
                f"[bold]Local Copy:[/bold] {report.local_path}",
                title=app.name,
                border_style="blue",
            )
        )

        if report.classification.total == 0:
            console.print("[green]No encrypted binaries found.[/green]")
        else:
            print_classification(console, report.classification)

        print_diagnostics(console, report.diagnostics)

    except FridaNotInstalledError:
        console.print(
            "[red]Error:[/red] Frida not installed.\n"
            "Install with: [cyan]pip install frida[/cyan]"
        )
        raise SystemExit(1)

    except ProcessNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    except AppcryptError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print()
        console.print(
            "[dim]Troubleshooting tips:[/dim]\n"
            "- Ensure frida-server is running on the device\n"
            "- Check SSH access: ssh -p 2222 mobile@localhost\n"
            "- Verify the app is installed: appcrypt apps list"
        )
        raise SystemExit(1)
