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

"""Serialized output for analysis results.

Every format is deterministic for a given result:
- json: sorted keys, 2-space indentation, LF line endings, trailing newline
- yaml: yaml.safe_dump of the same data, fields in model order
- csv: one header row, then one row per record in discovery order
"""

from __future__ import annotations

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any, Callable

import yaml

from sockscope.exceptions import ExportError
from sockscope.models.sockets import AnalysisResult, SocketRecord

logger = logging.getLogger(__name__)

CSV_COLUMNS = tuple(SocketRecord.model_fields)


def to_canonical_json(data: dict[str, Any] | Any) -> str:
    """Convert data to canonical JSON string.

    Canonical JSON: sorted keys, 2-space indent, ensure LF, trailing newline.
    """
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")

    result = json.dumps(data, sort_keys=True, indent=2, ensure_ascii=False)
    # Ensure LF line endings
    result = result.replace("\r\n", "\n").replace("\r", "\n")
    # Ensure trailing newline
    if not result.endswith("\n"):
        result += "\n"
    return result


def to_yaml(result: AnalysisResult) -> str:
    return yaml.safe_dump(
        result.model_dump(mode="json"),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )


def _csv_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_csv(result: AnalysisResult) -> str:
    """Flatten records into CSV. Unset optional fields are empty cells."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for record in result.records:
        row = record.model_dump(mode="json")
        writer.writerow([_csv_cell(row[column]) for column in CSV_COLUMNS])
    return buffer.getvalue()


EXPORTERS: dict[str, Callable[[AnalysisResult], str]] = {
    "json": to_canonical_json,
    "yaml": to_yaml,
    "csv": to_csv,
}


def export_result(result: AnalysisResult, fmt: str) -> str:
    """Render ``result`` in ``fmt`` ("json", "yaml" or "csv").

    Raises:
        ExportError: unknown format
    """
    exporter = EXPORTERS.get(fmt.lower())
    if exporter is None:
        raise ExportError(
            f"Unknown output format {fmt!r} (available: {', '.join(sorted(EXPORTERS))})"
        )
    return exporter(result)


def write_export(result: AnalysisResult, fmt: str, output_path: Path) -> None:
    """Write the rendered result to ``output_path``."""
    content = export_result(result, fmt)

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(content, encoding="utf-8", newline="\n")
    except OSError as e:
        raise ExportError(f"Cannot write {output_path}: {e}") from e
    logger.info("Wrote %s report to %s", fmt, output_path)
