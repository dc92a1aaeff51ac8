"""
CLI command for scanning a local app bundle.

Reads every file under a bundle directory, lists the Mach-O binaries
that are still encrypted, and optionally groups them by main app and
app extension.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from appcrypt.core import (
    BinaryRecord,
    ClassificationResult,
    Diagnostic,
    DiagnosticKind,
    SubBundleDescriptor,
    classify,
    scan_bundle,
)
from appcrypt.core.classifier import STRAY_EXECUTABLE_HINT
from appcrypt.exceptions import AppcryptError

logger = logging.getLogger(__name__)


def get_console(ctx: click.Context) -> Console:
    """Get console from context or create new one."""
    if ctx.obj and "console" in ctx.obj:
        return ctx.obj["console"]
    return Console()


def parse_extension(value: str) -> SubBundleDescriptor:
    """Parse an ID=PATH extension option."""
    sub_id, sep, path = value.partition("=")
    if not sep or not sub_id or not path:
        raise click.BadParameter(f"expected ID=PATH, got '{value}'")
    return SubBundleDescriptor(id=sub_id, bundle_path=path)


def binaries_table(title: str, records: list[BinaryRecord]) -> Table:
    """Build a table of binaries."""
    table = Table(title=title)
    table.add_column("Path", style="cyan")
    table.add_column("Type", style="dim")
    table.add_column("Crypt ID", justify="right")
    table.add_column("Crypt Offset", justify="right")
    table.add_column("Crypt Size", justify="right")

    for record in records:
        table.add_row(
            record.path,
            record.file_type_name,
            str(record.crypt_id),
            f"0x{record.crypt_offset:x}",
            f"{record.crypt_size:,}",
        )

    return table


def print_classification(console: Console, result: ClassificationResult) -> None:
    """Print main app and extension binaries."""
    console.print(
        binaries_table("Main App Binaries", list(result.main_binaries.values()))
    )
    for sub_id, group in result.sub_bundle_binaries.items():
        console.print(binaries_table(f"Extension: {sub_id}", list(group.values())))


def print_diagnostics(console: Console, diagnostics: list[Diagnostic]) -> None:
    """Print warnings collected during a scan."""
    if not diagnostics:
        return
    console.print()
    for diagnostic in diagnostics:
        console.print(
            f"[yellow]Warning:[/yellow] {diagnostic.path}: {diagnostic.message}"
        )
    if any(d.kind is DiagnosticKind.STRAY_EXECUTABLE for d in diagnostics):
        console.print(f"[dim]{STRAY_EXECUTABLE_HINT}[/dim]")


@click.command("scan")
@click.argument("root", type=click.Path(file_okay=False))
@click.option(
    "--main",
    "main_executable",
    help="Main executable path, relative to ROOT. Enables classification.",
)
@click.option(
    "--extension",
    "-e",
    "extensions",
    multiple=True,
    help="Extension as ID=PATH (PATH relative to ROOT). Repeatable, order matters. Requires --main.",
)
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(min=1),
    default=None,
    help="Number of threads reading files.",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def scan(
    ctx: click.Context,
    root: str,
    main_executable: Optional[str],
    extensions: tuple[str, ...],
    workers: Optional[int],
    as_json: bool,
) -> None:
    """
    Scan a local app bundle for encrypted binaries.

    Lists every Mach-O file under ROOT whose cryptid is nonzero. With
    --main, binaries are grouped by owner: the first --extension whose
    path is a prefix of a binary's path owns it, everything else belongs
    to the main app.

    Examples:

        $ appcrypt scan ./Payload/App.app
        $ appcrypt scan ./Payload/App.app --main App -e com.example.App.widget=PlugIns/Widget.appex
        $ appcrypt scan ./Payload/App.app --json
    """
    console = get_console(ctx)
    sub_bundles = [parse_extension(value) for value in extensions]
    if sub_bundles and main_executable is None:
        raise click.UsageError("--extension requires --main", ctx=ctx)

    if workers is None:
        config = ctx.obj.get("config") if ctx.obj else None
        workers = config.scan.workers if config else 1

    try:
        result = scan_bundle(root, workers=workers)
    except AppcryptError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    classification = None
    if main_executable is not None:
        classification = classify(result.records, main_executable, sub_bundles)

    if as_json:
        data = result.to_dict()
        if classification is not None:
            data["classification"] = classification.to_dict()
        console.print_json(json.dumps(data))
        return

    if not result.records:
        console.print(f"[dim]No encrypted binaries found in {root}.[/dim]")
    elif classification is None:
        console.print(binaries_table("Encrypted Binaries", result.records))
    else:
        print_classification(console, classification)

    diagnostics = result.diagnostics
    if classification is not None:
        diagnostics = diagnostics + classification.diagnostics
    print_diagnostics(console, diagnostics)

    console.print(
        f"\n[dim]{len(result.records)} encrypted binary(ies) in "
        f"{result.files_scanned} file(s)[/dim]"
    )
