"""Shared output utilities used by the CLI."""

from __future__ import annotations

import json
import sys

from rich.console import Console
from rich.json import JSON as RichJSON
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def output_json(data: dict | list):
    """Standard JSON output, pretty on a terminal and compact when piped."""
    if sys.stdout.isatty():
        console.print(RichJSON(json.dumps(data, indent=2, default=str)))
    else:
        print(json.dumps(data, default=str))


def output_error(error: Exception):
    """Report a failure as JSON and exit with status 1."""
    output_json({"error": str(error), "type": type(error).__name__})
    raise SystemExit(1)


def devices_table(listing: dict) -> Table:
    table = Table(title="Connected devices and booted simulators")
    table.add_column("Kind", style="bold")
    table.add_column("Identifier")
    table.add_column("Name")
    table.add_column("Details")
    for d in listing.get("devices", []):
        table.add_row(
            "device", d["identifier"], d["name"],
            f"{d['model']} iOS {d['os_version']} ({d['connection_type']})",
        )
    for s in listing.get("simulators", []):
        table.add_row("simulator", s["udid"], s["name"], s["state"])
    return table
