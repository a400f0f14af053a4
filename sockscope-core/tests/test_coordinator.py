"""Tests for the file walker / coordinator."""

import shutil
import subprocess
from pathlib import Path

import pytest

from sockscope.scanner.coordinator import (
    discover_files,
    get_files_directory,
    get_files_git,
    get_go_files,
    get_python_files,
    get_source_files,
    language_for_path,
)

FIXTURES = Path(__file__).parent / "fixtures"


class TestDiscoverFiles:
    def test_fixture_directory(self):
        files, source = discover_files(FIXTURES / "go_service")
        assert source == "directory"  # No .git in fixtures
        assert files == [Path("client.go"), Path("server.go"), Path("variables.go")]

    def test_nonexistent_dir_raises(self):
        with pytest.raises(FileNotFoundError):
            discover_files(Path("/nonexistent/path"))

    def test_not_a_dir_raises(self):
        with pytest.raises(NotADirectoryError):
            discover_files(FIXTURES / "go_service" / "server.go")


class TestDirectoryWalk:
    def test_ignores_vendor_and_caches(self, tmp_path: Path):
        (tmp_path / "main.go").write_text("package main\n")
        (tmp_path / "vendor" / "github.com" / "x").mkdir(parents=True)
        (tmp_path / "vendor" / "github.com" / "x" / "x.go").write_text("package x\n")
        (tmp_path / "__pycache__").mkdir()
        (tmp_path / "__pycache__" / "m.cpython-311.pyc").write_bytes(b"\x00")

        files = get_files_directory(tmp_path)
        assert files == [Path("main.go")]

    def test_build_output_ignored_only_at_root(self, tmp_path: Path):
        for rel in ("build/gen.go", "dist/app.py", "internal/build/server.go", "pkg/dist/client.go"):
            (tmp_path / rel).parent.mkdir(parents=True, exist_ok=True)
            (tmp_path / rel).write_text("package x\n")

        files = get_files_directory(tmp_path)
        assert files == [Path("internal/build/server.go"), Path("pkg/dist/client.go")]

    def test_anchored_pattern_in_ignore_file(self, tmp_path: Path):
        (tmp_path / "gen").mkdir()
        (tmp_path / "gen" / "a.go").write_text("package gen\n")
        (tmp_path / "cmd" / "gen").mkdir(parents=True)
        (tmp_path / "cmd" / "gen" / "main.go").write_text("package main\n")
        (tmp_path / ".sockscopeignore").write_text("/gen\n")

        assert get_files_directory(tmp_path) == [Path(".sockscopeignore"), Path("cmd/gen/main.go")]

    def test_sockscopeignore(self, tmp_path: Path):
        (tmp_path / "app.py").write_text("x = 1\n")
        (tmp_path / "testdata").mkdir()
        (tmp_path / "testdata" / "sample.go").write_text("package testdata\n")
        (tmp_path / ".sockscopeignore").write_text("# fixtures\ntestdata\n*_gen.py\n")
        (tmp_path / "models_gen.py").write_text("y = 2\n")

        files = get_files_directory(tmp_path)
        assert Path("app.py") in files
        assert Path("testdata/sample.go") not in files
        assert Path("models_gen.py") not in files

    def test_nested_paths_are_relative_and_sorted(self, tmp_path: Path):
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "z.go").write_text("package b\n")
        (tmp_path / "a.go").write_text("package a\n")
        assert get_files_directory(tmp_path) == [Path("a.go"), Path("b/z.go")]


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
class TestGitManifest:
    def test_git_listing_honours_ignores(self, tmp_path: Path):
        subprocess.run(["git", "init", "-q"], cwd=tmp_path, check=True)
        (tmp_path / "main.go").write_text("package main\n")
        (tmp_path / "vendor").mkdir()
        (tmp_path / "vendor" / "dep.go").write_text("package dep\n")

        (tmp_path / "internal" / "build").mkdir(parents=True)
        (tmp_path / "internal" / "build" / "server.go").write_text("package build\n")

        files = get_files_git(tmp_path)
        assert files == [Path("internal/build/server.go"), Path("main.go")]

        discovered, source = discover_files(tmp_path)
        assert source == "git"
        assert discovered == [Path("internal/build/server.go"), Path("main.go")]


class TestFileFilters:
    def test_go_filter(self):
        all_files = [Path("a.go"), Path("b.py"), Path("c.go"), Path("go.mod")]
        assert get_go_files(all_files) == [Path("a.go"), Path("c.go")]

    def test_python_filter(self):
        all_files = [Path("a.py"), Path("b.txt"), Path("c.py"), Path("d.pyc")]
        assert get_python_files(all_files) == [Path("a.py"), Path("c.py")]

    def test_source_filter_keeps_order(self):
        all_files = [Path("z.py"), Path("a.go"), Path("README.md")]
        assert get_source_files(all_files, ["go", "python"]) == [Path("z.py"), Path("a.go")]
        assert get_source_files(all_files, ["python"]) == [Path("z.py")]

    def test_language_for_path(self):
        assert language_for_path(Path("x/main.go")) == "go"
        assert language_for_path(Path("app.py")) == "python"
        assert language_for_path(Path("lib.rs")) is None
