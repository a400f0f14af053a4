"""Tests for the JSON, YAML and CSV exporters."""

import csv
import io
import json
from pathlib import Path

import pytest
import yaml

from sockscope.exceptions import ExportError
from sockscope.models.sockets import AnalysisResult, Confidence, Protocol, SkippedFile, SocketRecord, TrafficDirection
from sockscope.reporter.export import CSV_COLUMNS, export_result, to_canonical_json, write_export


def _result():
    listener = SocketRecord(
        direction=TrafficDirection.INGRESS,
        protocol=Protocol.HTTP,
        pattern_id="http.ListenAndServe",
        raw_value=":3000",
        resolved=True,
        listen_interface="0.0.0.0",
        listen_port=3000,
        source_file="server.go",
        source_line=12,
        owner_name="svc",
        function_name="main",
        confidence=Confidence.HIGH,
    )
    unresolved = SocketRecord(
        direction=TrafficDirection.EGRESS,
        protocol=Protocol.TCP,
        pattern_id="net.Dial",
        raw_value="cfg.Addr",
        source_file="client.go",
        source_line=7,
        owner_name="svc",
    )
    return AnalysisResult(
        owner_name="svc",
        records=[listener, unresolved],
        skipped_files=[SkippedFile(path="broken.go", reason="Go syntax error at line 3")],
    )


class TestCanonicalJson:
    def test_sorted_keys_and_trailing_newline(self):
        text = to_canonical_json({"b": 1, "a": 2})
        assert text == '{\n  "a": 2,\n  "b": 1\n}\n'

    def test_result_round_trip(self):
        data = json.loads(export_result(_result(), "json"))
        assert data["owner_name"] == "svc"
        assert data["total_count"] == 2
        assert data["ingress_count"] == 1
        assert data["egress_count"] == 1
        assert data["records"][0]["direction"] == "ingress"
        assert data["records"][0]["confidence"] == "high"
        assert data["records"][1]["destination_host"] is None
        assert data["skipped_files"][0]["path"] == "broken.go"

    def test_deterministic(self):
        assert export_result(_result(), "json") == export_result(_result(), "json")


class TestYaml:
    def test_yaml_matches_model(self):
        data = yaml.safe_load(export_result(_result(), "yaml"))
        assert data["total_count"] == 2
        assert data["records"][0]["listen_port"] == 3000
        assert data["records"][1]["resolved"] is False


class TestCsv:
    def test_header_and_rows(self):
        rows = list(csv.reader(io.StringIO(export_result(_result(), "csv"))))
        assert tuple(rows[0]) == CSV_COLUMNS
        assert len(rows) == 3

        first = dict(zip(rows[0], rows[1]))
        assert first["direction"] == "ingress"
        assert first["listen_port"] == "3000"
        assert first["resolved"] == "true"
        assert first["destination_host"] == ""

        second = dict(zip(rows[0], rows[2]))
        assert second["resolved"] == "false"
        assert second["confidence"] == ""
        assert second["raw_value"] == "cfg.Addr"

    def test_empty_result_is_header_only(self):
        assert export_result(AnalysisResult(), "csv").count("\n") == 1


class TestExportErrors:
    def test_unknown_format(self):
        with pytest.raises(ExportError, match="xml"):
            export_result(_result(), "xml")

    def test_format_is_case_insensitive(self):
        assert export_result(_result(), "JSON") == export_result(_result(), "json")


class TestWriteExport:
    def test_writes_file(self, tmp_path: Path):
        out = tmp_path / "reports" / "sockets.json"
        write_export(_result(), "json", out)
        assert json.loads(out.read_text(encoding="utf-8"))["total_count"] == 2
        assert out.read_bytes().endswith(b"}\n")
