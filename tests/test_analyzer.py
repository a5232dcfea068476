"""Tests for the structural BOM analyzer and its reporters."""

import hashlib
import json

from bom_builder import BomBuilder
from rich.console import Console

from bom_forensics.analysis.bom_analyzer import BomAnalyzer
from bom_forensics.formats.bom.structures import WarningKind
from bom_forensics.reporting import console as console_reporter
from bom_forensics.reporting.json_reporter import to_json_dict, write_json


def _findings(report):
    return {f.name: f for f in report.findings}


class TestBomAnalyzer:
    def test_clean_file(self, paths_bom_file, paths_bom_bytes):
        report = BomAnalyzer(str(paths_bom_file)).run(stages=["sha256", "structure"])
        findings = _findings(report)

        assert report.ok
        assert report.format == "bom"
        assert report.stages_run == ["sha256", "structure"]
        assert report.sha256_hex == hashlib.sha256(paths_bom_bytes).hexdigest()
        assert findings["structure:signature"].ok
        assert findings["structure:free_list"].ok
        assert findings["variable:Paths"].ok
        assert findings["tree:Paths"].context["entries"] == 25
        assert findings["tree:Paths"].context["path_count"] == 25
        assert "tree:BomInfo" not in findings
        assert report.metadata["variables"] == 2
        assert report.diagnostics == []

    def test_sha256_only(self, paths_bom_file):
        report = BomAnalyzer(str(paths_bom_file)).run(stages=["sha256"])
        assert report.findings == []
        assert report.stages_run == ["sha256"]

    def test_corrupt_tree(self, tmp_path):
        b = BomBuilder()
        b.tree("Paths", b.leaf([b.entry(b"\0\0\0\0a", bytes(8)), (999, 998)]), path_count=2)
        b.add_variable("Ghost", 4242)
        path = tmp_path / "corrupt.bom"
        path.write_bytes(b.build())

        report = BomAnalyzer(str(path)).run(stages=["structure"])
        findings = _findings(report)

        assert not report.ok
        assert not findings["tree:Paths"].ok
        assert findings["tree:Paths"].context["entries"] == 1
        assert not findings["variable:Ghost"].ok
        assert [d.kind for d in report.diagnostics] == [WarningKind.UNRESOLVABLE_ENTRY]
        assert any(r.target == "tree Paths" for r in report.reason_matrix)

    def test_dropped_free_list_fails(self, tmp_path):
        b = BomBuilder()
        b.add_block(b"data")
        b.free_blocks = [(0, 0)]
        b.index_length = 4 + 2 * 8 + 4
        path = tmp_path / "short_free.bom"
        path.write_bytes(b.build())

        report = BomAnalyzer(str(path)).run(stages=["structure"])
        findings = _findings(report)

        assert not report.ok
        assert findings["structure:block_table"].ok
        assert not findings["structure:free_list"].ok
        assert any(r.target == "free list" for r in report.reason_matrix)

    def test_block_table_past_index_region(self, tmp_path):
        b = BomBuilder()
        b.tree("Paths", b.leaf([b.entry(b"\0\0\0\0a", bytes(8))]), path_count=1)
        b.index_length = 8
        path = tmp_path / "short_index.bom"
        path.write_bytes(b.build())

        report = BomAnalyzer(str(path)).run(stages=["structure"])
        findings = _findings(report)

        assert "parse" not in findings
        assert not findings["structure:block_table"].ok
        assert not findings["structure:free_list"].ok
        assert findings["tree:Paths"].ok
        assert findings["tree:Paths"].context["entries"] == 1

    def test_unparseable_file(self, tmp_path):
        path = tmp_path / "garbage.bom"
        path.write_bytes(b"not a bom")

        report = BomAnalyzer(str(path)).run(stages=["structure"])

        assert not report.ok
        assert report.findings[0].name == "parse"
        assert report.reason_matrix[0].target == "bom tables"


class TestReporters:
    def test_json_report(self, tmp_path, paths_bom_file):
        report = BomAnalyzer(str(paths_bom_file)).run(stages=["structure"])
        out = tmp_path / "report.json"
        write_json(report, str(out))

        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["ok"] is True
        assert data["format"] == "bom"
        assert any(f["name"] == "tree:Paths" for f in data["findings"])

    def test_json_diagnostics_are_plain(self, tmp_path):
        b = BomBuilder()
        b.tree("T", b.leaf([(999, 998)]))
        path = tmp_path / "bad.bom"
        path.write_bytes(b.build())

        data = to_json_dict(BomAnalyzer(str(path)).run(stages=["structure"]))
        assert data["diagnostics"][0]["kind"] == "unresolvable_entry"
        json.dumps(data)

    def test_console_report(self, monkeypatch, paths_bom_file):
        recorder = Console(record=True, width=160)
        monkeypatch.setattr(console_reporter, "console", recorder)

        console_reporter.render_report(BomAnalyzer(str(paths_bom_file)).run(stages=["structure"]))
        text = recorder.export_text()

        assert "BOM Forensics Summary" in text
        assert "Structure Checks" in text
        assert "entries=25" in text
