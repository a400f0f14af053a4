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

"""sockscope CLI: Typer entry point.

Commands:
- sockscope scan <path>     Find listeners and outbound connections, export them
- sockscope patterns        Show the effective pattern catalog
- sockscope version         Show the version

Exit codes: 0 success, 1 analysis failure, 2 bad usage.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import typer

from sockscope import __version__
from sockscope.config import load_config
from sockscope.exceptions import (
    AnalysisTimeout,
    CatalogError,
    ConfigError,
    ExportError,
    MalformedSourceError,
    UnsupportedLanguageError,
)
from sockscope.reporter.console_out import console, print_catalog, print_error, print_summary
from sockscope.reporter.export import export_result, write_export
from sockscope.scanner.analyzer import analyze_path, build_catalogs

app = typer.Typer(
    name="sockscope",
    help=(
        "sockscope: static inventory of network listeners and outbound "
        "connections in Go and Python code. Run 'sockscope <command> --help' for flags."
    ),
    add_completion=False,
)

logger = logging.getLogger("sockscope")

EXIT_ANALYSIS_FAILED = 1
EXIT_USAGE = 2

_ALL_LANGUAGES = ["go", "python"]


def _configure_logging(verbose: bool, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _languages_option(language: Optional[str]) -> Optional[list[str]]:
    if language is None:
        return None
    if language == "all":
        return list(_ALL_LANGUAGES)
    if language not in _ALL_LANGUAGES:
        print_error(f"Unknown language {language!r} (choose go, python or all)")
        raise typer.Exit(code=EXIT_USAGE)
    return [language]


@app.command()
def scan(
    path: str = typer.Argument(".", help="Directory or source file to scan (default: current directory)"),
    output_format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: json, yaml or csv"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the export to a file instead of stdout"),
    language: Optional[str] = typer.Option(None, "--language", "-l", help="go, python or all"),
    catalog: Optional[list[Path]] = typer.Option(None, "--catalog", help="YAML pattern file to add (repeatable)"),
    on_error: Optional[str] = typer.Option(None, "--on-error", help="abort (default) or skip malformed files"),
    jobs: Optional[int] = typer.Option(None, "--jobs", "-j", help="Files analysed in parallel"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Give up after this many seconds"),
    resolve_imports: Optional[bool] = typer.Option(
        None, "--resolve-imports/--lexical", help="Match calls through import aliases only"
    ),
    summary: bool = typer.Option(False, "--summary", help="Print a table instead of the export on stdout"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="Config file (default: <path>/.sockscope.yaml)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging: every match and resolver step"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress all output except errors"),
) -> None:
    """Scan a directory or file for sockets and export what was found.

    A file that cannot be parsed stops the run with exit code 1 unless
    --on-error skip is given; nothing is exported for a failed run.
    """
    _configure_logging(verbose, quiet)

    target = Path(path)
    if not target.exists():
        print_error(f"Path not found: {target.resolve()}")
        raise typer.Exit(code=EXIT_USAGE)

    overrides = {
        "languages": _languages_option(language),
        "error_policy": on_error,
        "jobs": jobs,
        "timeout": timeout,
        "resolve_imports": resolve_imports,
        "catalog_files": [str(p) for p in catalog] if catalog else None,
        "output_format": output_format.lower() if output_format else None,
    }
    try:
        config = load_config(target.resolve(), config_file=config_file, overrides=overrides)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=EXIT_USAGE)

    try:
        result = analyze_path(target, config)
    except (CatalogError, UnsupportedLanguageError) as e:
        print_error(str(e))
        raise typer.Exit(code=EXIT_USAGE)
    except MalformedSourceError as e:
        print_error(f"Cannot analyse {e.path}: {e.reason}")
        raise typer.Exit(code=EXIT_ANALYSIS_FAILED)
    except AnalysisTimeout as e:
        print_error(str(e))
        raise typer.Exit(code=EXIT_ANALYSIS_FAILED)

    try:
        if output is not None:
            write_export(result, config.output_format, output)
            if not quiet:
                console.print(f"[dim]Wrote {result.total_count} record(s) to {output}[/dim]")
        if summary:
            if not quiet:
                print_summary(result)
        elif output is None:
            sys.stdout.write(export_result(result, config.output_format))
    except ExportError as e:
        print_error(str(e))
        raise typer.Exit(code=EXIT_ANALYSIS_FAILED)


@app.command()
def patterns(
    language: str = typer.Option("go", "--language", "-l", help="go or python"),
    catalog: Optional[list[Path]] = typer.Option(None, "--catalog", help="YAML pattern file to add (repeatable)"),
) -> None:
    """Show the pattern catalog a scan would use."""
    if language not in _ALL_LANGUAGES:
        print_error(f"Unknown language {language!r} (choose go or python)")
        raise typer.Exit(code=EXIT_USAGE)

    try:
        catalogs = build_catalogs([language], catalog or [])
    except CatalogError as e:
        print_error(str(e))
        raise typer.Exit(code=EXIT_USAGE)

    print_catalog(catalogs[language])


@app.command()
def version() -> None:
    """Show the sockscope version."""
    console.print(f"sockscope v{__version__}")


if __name__ == "__main__":
    app()
