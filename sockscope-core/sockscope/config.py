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

"""Scan configuration.

Sources, later wins:
1. ScanConfig defaults
2. .sockscope.yaml in the target directory, or an explicit --config file
3. CLI flags (passed in as ``overrides``)

Example .sockscope.yaml:

    languages: [go]
    error_policy: skip
    jobs: 8
    timeout: 120
    resolve_imports: true
    catalog_files:
      - patterns/internal-rpc.yaml
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sockscope.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".sockscope.yaml"

Language = Literal["go", "python"]
OutputFormat = Literal["json", "yaml", "csv"]


class ErrorPolicy(str, Enum):
    """What to do when one file cannot be parsed."""

    ABORT = "abort"  # stop the run and report the file
    SKIP = "skip"  # log, record in skipped_files, keep going


class ScanConfig(BaseModel):
    """Validated settings for one analysis run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    languages: list[Language] = Field(default_factory=lambda: ["go", "python"], min_length=1)
    error_policy: ErrorPolicy = ErrorPolicy.ABORT
    jobs: int = Field(default=4, ge=1, le=64)
    timeout: Optional[float] = Field(default=None, gt=0)
    resolve_imports: bool = False
    catalog_files: list[Path] = Field(default_factory=list)
    output_format: OutputFormat = "json"


def _read_config_file(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: expected a mapping at top level")

    # catalog paths are relative to the file that names them
    catalog_files = data.get("catalog_files")
    if isinstance(catalog_files, list):
        data["catalog_files"] = [
            str(config_path.parent / entry) if isinstance(entry, str) else entry
            for entry in catalog_files
        ]
    return data


def find_config_file(target: Path) -> Path | None:
    """Return the .sockscope.yaml governing ``target``, if there is one."""
    base = target if target.is_dir() else target.parent
    candidate = base / CONFIG_FILE_NAME
    return candidate if candidate.is_file() else None


def load_config(
    target: Path,
    config_file: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> ScanConfig:
    """Build the effective ScanConfig for a scan of ``target``.

    ``overrides`` entries whose value is None are ignored, so CLI options
    left at their defaults do not mask the config file.

    Raises:
        ConfigError: the config file is missing, unreadable or invalid
    """
    data: dict[str, Any] = {}

    if config_file is not None:
        if not config_file.is_file():
            raise ConfigError(f"Config file not found: {config_file}")
        data = _read_config_file(config_file)
        logger.info("Loaded config from %s", config_file)
    else:
        found = find_config_file(target)
        if found is not None:
            data = _read_config_file(found)
            logger.info("Loaded config from %s", found)

    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    try:
        return ScanConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid scan configuration: {e}") from e
