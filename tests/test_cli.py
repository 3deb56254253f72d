"""Tests for the fusion-scan command line: artifact loading, exit codes and report output."""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "scripts"))

from exceptions import ConfigurationError
from schemas import ScanConfiguration
from scanning.cli import build_parser, load_artifact, main

API_KEY_SOURCE = 'const apiKey = "sk-' + "a1B2" * 8 + '";\n'
CLEAN_SOURCE = "def add(a, b):\n    return a + b\n"


@pytest.fixture()
def project(tmp_path):
    """A small project tree with vendored and nested files."""
    root = tmp_path / "webapp"
    (root / "src").mkdir(parents=True)
    (root / "node_modules" / "lodash").mkdir(parents=True)
    (root / ".git").mkdir()
    (root / "src" / "app.js").write_text(API_KEY_SOURCE, encoding="utf-8")
    (root / "README.md").write_text("# webapp\n", encoding="utf-8")
    (root / "node_modules" / "lodash" / "index.js").write_text("module.exports = {};\n", encoding="utf-8")
    (root / ".git" / "config").write_text("[core]\n", encoding="utf-8")
    (root / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\xff\xfe\x00")
    return root


class TestLoadArtifact:
    def test_single_file(self, tmp_path):
        target = tmp_path / "app.js"
        target.write_text(API_KEY_SOURCE, encoding="utf-8")
        artifact = load_artifact(str(target), ScanConfiguration())
        assert [f.path for f in artifact.files] == ["app.js"]
        assert artifact.files[0].content == API_KEY_SOURCE

    def test_directory_walk(self, project):
        artifact = load_artifact(str(project), ScanConfiguration())
        assert artifact.name == "webapp"
        assert [f.path for f in artifact.files] == ["README.md", "src/app.js"]

    def test_custom_exclude(self, project):
        config = ScanConfiguration(excluded_paths=["src/**"])
        paths = [f.path for f in load_artifact(str(project), config).files]
        assert "src/app.js" not in paths
        assert "node_modules/lodash/index.js" in paths

    def test_depth_limit(self, project):
        deep = project / "src" / "lib" / "vendor"
        deep.mkdir(parents=True)
        (deep / "x.js").write_text("x\n", encoding="utf-8")
        config = ScanConfiguration(scan_depth=1)
        paths = [f.path for f in load_artifact(str(project), config).files]
        assert paths == ["README.md", "src/app.js"]

    def test_missing_target(self, tmp_path):
        with pytest.raises(ConfigurationError, match="neither a file nor a directory"):
            load_artifact(str(tmp_path / "missing"), ScanConfiguration())


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["src"])
        assert args.profile == "standard"
        assert args.fail_on == "High"
        assert args.format is None

    def test_repeatable_format(self):
        args = build_parser().parse_args(["src", "--format", "json", "--format", "sarif"])
        assert args.format == ["json", "sarif"]

    def test_invalid_choice(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["src", "--scan-type", "DAST"])


class TestMain:
    def test_findings_above_fail_on_exit_one(self, tmp_path):
        target = tmp_path / "app.js"
        target.write_text(API_KEY_SOURCE, encoding="utf-8")
        assert main([str(target), "--no-reports"]) == 1

    def test_clean_source_exit_zero(self, tmp_path):
        target = tmp_path / "util.py"
        target.write_text(CLEAN_SOURCE, encoding="utf-8")
        assert main([str(target), "--no-reports"]) == 0

    def test_fail_on_threshold_respected(self, tmp_path):
        target = tmp_path / "hash.py"
        target.write_text("digest = hashlib.md5(data)\n", encoding="utf-8")
        assert main([str(target), "--no-reports", "--scan-type", "SAST",
                     "--disable-backend", "ai"]) == 0
        assert main([str(target), "--no-reports", "--scan-type", "SAST",
                     "--disable-backend", "ai", "--fail-on", "Medium"]) == 1

    def test_configuration_error_exit_two(self, tmp_path):
        target = tmp_path / "app.js"
        target.write_text(CLEAN_SOURCE, encoding="utf-8")
        assert main([str(target), "--scan-type", "Compliance", "--no-reports"]) == 2

    def test_missing_profile_exit_two(self, tmp_path):
        target = tmp_path / "app.js"
        target.write_text(CLEAN_SOURCE, encoding="utf-8")
        assert main([str(target), "--profile", "no-such-profile"]) == 2

    def test_reports_written(self, tmp_path, capsys):
        target = tmp_path / "app.js"
        target.write_text(API_KEY_SOURCE, encoding="utf-8")
        out_dir = tmp_path / "reports"
        main([str(target), "--output-dir", str(out_dir), "--format", "json", "--format", "markdown"])

        json_reports = list(out_dir.glob("*.json"))
        assert len(json_reports) == 1
        assert len(list(out_dir.glob("*.md"))) == 1
        assert not list(out_dir.glob("*.sarif"))
        data = json.loads(json_reports[0].read_text(encoding="utf-8"))
        assert data["summary"]["total_issues"] >= 1
        assert "SECURITY SCAN - FINAL RESULTS" in capsys.readouterr().out

    def test_sbom_written(self, tmp_path):
        target = tmp_path / "requirements.txt"
        target.write_text("requests==2.31.0\nPyQt5==5.15.10\n", encoding="utf-8")
        out_dir = tmp_path / "reports"
        main([str(target), "--sbom", "--output-dir", str(out_dir), "--format", "json"])

        boms = list(out_dir.glob("*.cdx.json"))
        assert len(boms) == 1
        bom = json.loads(boms[0].read_text(encoding="utf-8"))
        assert [c["name"] for c in bom["components"]] == ["requests", "pyqt5"]
        assert bom["components"][1]["licenses"] == [{"license": {"id": "GPL-3.0-only"}}]

    def test_audit_log_written(self, tmp_path):
        target = tmp_path / "app.js"
        target.write_text(CLEAN_SOURCE, encoding="utf-8")
        audit_path = tmp_path / "audit.jsonl"
        main([str(target), "--audit-log", str(audit_path), "--output-dir", str(tmp_path / "out")])
        events = [json.loads(line)["event_type"] for line in audit_path.read_text(encoding="utf-8").splitlines()]
        assert events[0] == "scan_initiated"
        assert events[-1] == "report_generated"

    def test_project_scan(self, project):
        assert main([str(project), "--no-reports", "--profile", "quick"]) == 1

    def test_list_profiles(self, capsys):
        assert main(["--list-profiles"]) == 0
        listed = capsys.readouterr().out.split()
        assert "standard" in listed
        assert "quick" in listed
