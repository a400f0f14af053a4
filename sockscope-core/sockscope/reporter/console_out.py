# sockscope: Static Socket Inventory
# Copyright (C) 2026 sockscope Project Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""Rich terminal output: socket summary table and catalog listing."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table
from rich.text import Text

from sockscope.models.sockets import AnalysisResult, Confidence, SocketRecord
from sockscope.scanner.catalog import PatternCatalog

console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)

_CONFIDENCE_STYLE = {
    Confidence.HIGH: "green",
    Confidence.MEDIUM: "yellow",
    Confidence.LOW: "magenta",
}


def format_address(record: SocketRecord) -> Text:
    """host:port (or interface:port) for resolved records, else the raw text dimmed."""
    if not record.resolved:
        return Text(record.raw_value or "?", style="dim")

    if record.is_ingress:
        host = record.listen_interface or "*"
        port = record.listen_port
    else:
        host = record.destination_host or "?"
        port = record.destination_port
    return Text(f"{host}:{port}" if port is not None else host)


def print_summary(result: AnalysisResult, target_console: Console | None = None) -> None:
    out = target_console or console

    table = Table(title=f"Sockets in {result.owner_name or 'target'}", show_lines=False)
    table.add_column("Dir", no_wrap=True)
    table.add_column("Proto", no_wrap=True)
    table.add_column("Address")
    table.add_column("Pattern", style="cyan")
    table.add_column("Location", style="dim")
    table.add_column("Function")
    table.add_column("Confidence", no_wrap=True)

    for record in result.records:
        direction = (
            Text("in", style="bold blue") if record.is_ingress else Text("out", style="bold")
        )
        confidence = record.confidence
        table.add_row(
            direction,
            record.protocol.value,
            format_address(record),
            record.pattern_id,
            f"{record.source_file}:{record.source_line}",
            record.function_name or "-",
            Text(confidence.value, style=_CONFIDENCE_STYLE[confidence]) if confidence else Text("-", style="dim"),
        )

    out.print(table)
    out.print(
        f"[bold]{result.total_count}[/bold] socket(s): "
        f"{result.ingress_count} ingress, {result.egress_count} egress"
    )
    for skipped in result.skipped_files:
        out.print(f"[yellow]Skipped {skipped.path}: {skipped.reason}[/yellow]")


def print_catalog(catalog: PatternCatalog, target_console: Console | None = None) -> None:
    out = target_console or console

    table = Table(title=f"Pattern catalog: {catalog.name} ({len(catalog)} entries)")
    table.add_column("Pattern", style="cyan")
    table.add_column("Direction")
    table.add_column("Protocol")
    table.add_column("Address arg", justify="right")
    table.add_column("URL")

    for name in sorted(catalog):
        descriptor = catalog[name]
        table.add_row(
            name,
            descriptor.direction.value,
            descriptor.protocol.value,
            str(descriptor.address_index),
            "yes" if descriptor.address_is_url else "",
        )

    out.print(table)


def print_error(message: str) -> None:
    err_console.print(Text(f"Error: {message}", style="red"), highlight=False)
