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

"""File walker: discovers source files to scan using git or a directory walk.

Primary strategy: git ls-files (if .git/ exists)
Fallback: recursive directory walk with .sockscopeignore support
Both lists are filtered through the same ignore patterns, so vendored
dependencies are skipped either way.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

# Default patterns to ignore in both discovery strategies
DEFAULT_IGNORE_PATTERNS = {
    "__pycache__",
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    "vendor",
    "third_party",
    ".venv",
    "venv",
    ".env",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    "/dist",
    "/build",
    "*.egg-info",
    ".eggs",
    "*.pyc",
    "*.pyo",
    "*.so",
    "*.dylib",
    "*.dll",
}

IGNORE_FILE_NAME = ".sockscopeignore"

# File extensions handled by each front end
GO_EXTENSIONS = {".go"}
PYTHON_EXTENSIONS = {".py"}

LANGUAGE_EXTENSIONS: dict[str, set[str]] = {
    "go": GO_EXTENSIONS,
    "python": PYTHON_EXTENSIONS,
}


def language_for_path(path: Path) -> str | None:
    """Return the front-end language for a file, or None if unsupported."""
    for language, extensions in LANGUAGE_EXTENSIONS.items():
        if path.suffix in extensions:
            return language
    return None


def _load_ignore_patterns(target_dir: Path) -> set[str]:
    """Load .sockscopeignore patterns from the target directory."""
    ignore_file = target_dir / IGNORE_FILE_NAME
    patterns = set(DEFAULT_IGNORE_PATTERNS)

    if ignore_file.exists():
        for line in ignore_file.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                patterns.add(line)

    return patterns


def _should_ignore(path: Path, ignore_patterns: set[str]) -> bool:
    """Check if a path matches any ignore pattern.

    A leading ``/`` anchors the pattern to the top level of the scan
    root, so ``/build`` skips ``build/`` but not ``cmd/build/``.
    """
    for pattern in ignore_patterns:
        if pattern.startswith("/"):
            if path.parts and path.parts[0] == pattern.strip("/"):
                return True
        elif pattern.startswith("*"):
            # Glob-style suffix matching
            suffix = pattern.lstrip("*")
            if path.name.endswith(suffix) or str(path).endswith(suffix):
                return True
        elif path.name == pattern or pattern in path.parts:
            return True
    return False


def get_files_git(target_dir: Path) -> list[Path] | None:
    """Get tracked files using git ls-files.

    Returns None if git is not available or target_dir is not a git repo.
    """
    try:
        result = subprocess.run(
            ["git", "ls-files", "--cached", "--others", "--exclude-standard"],
            cwd=str(target_dir),
            capture_output=True,
            text=True,
            timeout=30,
        )
    except FileNotFoundError:
        logger.debug("git not found in PATH")
        return None
    except subprocess.TimeoutExpired:
        logger.warning("git ls-files timed out")
        return None

    if result.returncode != 0:
        logger.debug("git ls-files failed: %s", result.stderr)
        return None

    ignore_patterns = _load_ignore_patterns(target_dir)
    files = [
        Path(line)
        for line in result.stdout.strip().splitlines()
        if line and not _should_ignore(Path(line), ignore_patterns)
    ]
    # deleted-but-tracked files are still listed by --cached
    return sorted(f for f in files if (target_dir / f).is_file())


def get_files_directory(target_dir: Path) -> list[Path]:
    """Get files via recursive directory walk with .sockscopeignore.

    Fallback when git is not available.
    """
    ignore_patterns = _load_ignore_patterns(target_dir)
    files = []

    for item in sorted(target_dir.rglob("*")):
        if item.is_file():
            rel_path = item.relative_to(target_dir)
            if not _should_ignore(rel_path, ignore_patterns):
                files.append(rel_path)

    return sorted(files)


def get_go_files(all_files: list[Path]) -> list[Path]:
    """Filter to Go source files."""
    return [f for f in all_files if f.suffix in GO_EXTENSIONS]


def get_python_files(all_files: list[Path]) -> list[Path]:
    """Filter to Python source files."""
    return [f for f in all_files if f.suffix in PYTHON_EXTENSIONS]


def get_source_files(all_files: list[Path], languages: list[str] | tuple[str, ...]) -> list[Path]:
    """Filter to files handled by any of ``languages``, keeping order."""
    extensions: set[str] = set()
    for language in languages:
        extensions |= LANGUAGE_EXTENSIONS.get(language, set())
    return [f for f in all_files if f.suffix in extensions]


def discover_files(target_dir: Path) -> tuple[list[Path], str]:
    """Discover files to scan.

    Returns:
        tuple of (files, manifest_source) where manifest_source is
        "git" or "directory". Paths are relative to ``target_dir``.
    """
    target_dir = target_dir.resolve()

    if not target_dir.exists():
        raise FileNotFoundError(f"Target directory does not exist: {target_dir}")

    if not target_dir.is_dir():
        raise NotADirectoryError(f"Target path is not a directory: {target_dir}")

    # Try git first
    git_dir = target_dir / ".git"
    if git_dir.exists():
        files = get_files_git(target_dir)
        if files is not None:
            logger.info("Using git-derived manifest (%d files)", len(files))
            return files, "git"

    # Fallback to directory walk
    files = get_files_directory(target_dir)
    logger.info("Using directory walk manifest (%d files)", len(files))
    return files, "directory"
