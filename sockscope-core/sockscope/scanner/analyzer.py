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

"""Aggregator and run driver: files -> SocketRecords -> AnalysisResult.

Per-file work (parse, match, resolve) is independent and runs on a
thread pool. Only the calling thread writes to the aggregator, and it
does so in traversal order, so the output order never depends on worker
scheduling.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from pathlib import Path
from typing import Optional

from sockscope.config import ErrorPolicy, ScanConfig
from sockscope.exceptions import AnalysisTimeout, MalformedSourceError, UnsupportedLanguageError
from sockscope.models.sockets import AnalysisResult, SkippedFile, SocketRecord
from sockscope.models.syntax import SourceUnit
from sockscope.scanner.catalog import PatternCatalog, catalog_for_language, load_catalog_file
from sockscope.scanner.coordinator import discover_files, get_source_files, language_for_path
from sockscope.scanner.go_frontend import parse_go_file
from sockscope.scanner.matcher import match_call_site
from sockscope.scanner.py_frontend import parse_python_file
from sockscope.scanner.resolver import resolve

logger = logging.getLogger(__name__)

_PARSERS = {
    "go": parse_go_file,
    "python": parse_python_file,
}


class Aggregator:
    """Collects finalized records into one AnalysisResult.

    Appends are serialized by a lock. Records are frozen, so nothing is
    copied on the way in.
    """

    def __init__(self, owner_name: str = "") -> None:
        self._result = AnalysisResult(owner_name=owner_name)
        self._lock = threading.Lock()

    def add(self, records: Iterable[SocketRecord]) -> None:
        with self._lock:
            self._result.records.extend(records)

    def skip(self, path: str, reason: str) -> None:
        with self._lock:
            self._result.skipped_files.append(SkippedFile(path=path, reason=reason))

    @property
    def result(self) -> AnalysisResult:
        return self._result


def build_catalogs(
    languages: Iterable[str],
    catalog_files: Iterable[Path] = (),
) -> dict[str, PatternCatalog]:
    """Built-in catalog per language, extended by every extension file."""
    catalog_files = list(catalog_files)
    catalogs: dict[str, PatternCatalog] = {}
    for language in languages:
        catalog = catalog_for_language(language)
        for path in catalog_files:
            catalog = load_catalog_file(path, base=catalog, language=language)
        catalogs[language] = catalog
    return catalogs


def analyze_unit(
    unit: SourceUnit,
    catalog: PatternCatalog,
    *,
    resolve_imports: bool = False,
) -> list[SocketRecord]:
    """Match and resolve every call of one parsed file, in source order.

    Raises:
        MalformedSourceError: declarations chain too deeply to follow
    """
    imports = unit.imports if resolve_imports else None
    records: list[SocketRecord] = []

    for call in unit.calls:
        record = match_call_site(
            call,
            catalog,
            imports=imports,
            source_file=unit.path,
            owner_name=unit.owner_name,
        )
        if record is None:
            continue
        try:
            records.append(resolve(record, call, unit.declarations, catalog))
        except RecursionError:
            raise MalformedSourceError(unit.path, "expression nesting too deep") from None

    return records


def analyze_file(
    path: Path,
    catalog: Optional[PatternCatalog] = None,
    *,
    resolve_imports: bool = False,
    relative_name: Optional[str] = None,
) -> list[SocketRecord]:
    """Parse one file with the front end for its extension and analyse it.

    Raises:
        UnsupportedLanguageError: no front end handles the file's extension
        MalformedSourceError: the file cannot be read or parsed
    """
    path = Path(path)
    language = language_for_path(path)
    if language is None:
        raise UnsupportedLanguageError(f"No front end for {path.name!r}")

    unit = _PARSERS[language](path, relative_name)
    if catalog is None:
        catalog = catalog_for_language(language)
    return analyze_unit(unit, catalog, resolve_imports=resolve_imports)


def _analyze_relative(
    base_dir: Path,
    rel_path: Path,
    catalogs: Mapping[str, PatternCatalog],
    resolve_imports: bool,
) -> list[SocketRecord]:
    language = language_for_path(rel_path)
    return analyze_file(
        base_dir / rel_path,
        catalogs[language],  # type: ignore[index]
        resolve_imports=resolve_imports,
        relative_name=rel_path.as_posix(),
    )


def analyze_path(target: Path | str, config: Optional[ScanConfig] = None) -> AnalysisResult:
    """Analyse a directory tree or a single source file.

    Raises:
        FileNotFoundError: ``target`` does not exist
        UnsupportedLanguageError: a single-file target has no front end
        MalformedSourceError: a file failed to parse under the abort policy
        AnalysisTimeout: ``config.timeout`` seconds passed first
        CatalogError: a catalog extension file is invalid
    """
    config = config or ScanConfig()
    target = Path(target).resolve()

    if not target.exists():
        raise FileNotFoundError(f"Target does not exist: {target}")

    if target.is_file():
        language = language_for_path(target)
        if language is None:
            raise UnsupportedLanguageError(f"No front end for {target.name!r}")
        base_dir = target.parent
        files = [Path(target.name)]
        owner_name = target.stem
        languages: list[str] = [language]
    else:
        all_files, _ = discover_files(target)
        base_dir = target
        files = get_source_files(all_files, config.languages)
        owner_name = target.name
        languages = list(config.languages)

    catalogs = build_catalogs(languages, config.catalog_files)
    aggregator = Aggregator(owner_name=owner_name)
    logger.info("Analysing %d file(s) with %d worker(s)", len(files), config.jobs)

    deadline = time.monotonic() + config.timeout if config.timeout else None
    executor = ThreadPoolExecutor(max_workers=config.jobs, thread_name_prefix="sockscope")
    try:
        futures: list[Future[list[SocketRecord]]] = [
            executor.submit(_analyze_relative, base_dir, rel_path, catalogs, config.resolve_imports)
            for rel_path in files
        ]
        _collect(files, futures, aggregator, config.error_policy, deadline)
    except BaseException:
        # queued files are dropped and in-flight results are never read
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    executor.shutdown(wait=True)

    result = aggregator.result
    logger.info(
        "Found %d socket(s): %d ingress, %d egress",
        result.total_count,
        result.ingress_count,
        result.egress_count,
    )
    return result


def _collect(
    files: list[Path],
    futures: list[Future[list[SocketRecord]]],
    aggregator: Aggregator,
    error_policy: ErrorPolicy,
    deadline: Optional[float],
) -> None:
    """Merge per-file results in traversal order, applying the error policy."""
    for completed, (rel_path, future) in enumerate(zip(files, futures)):
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            records = future.result(timeout=remaining)
        except FuturesTimeout:
            raise AnalysisTimeout(completed=completed, pending=len(files) - completed) from None
        except MalformedSourceError as e:
            if error_policy == ErrorPolicy.ABORT:
                raise
            logger.warning("Skipping %s: %s", rel_path.as_posix(), e.reason)
            aggregator.skip(rel_path.as_posix(), e.reason)
            continue
        aggregator.add(records)
