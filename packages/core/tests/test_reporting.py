"""Tests for report and backup files."""

from datetime import datetime, timezone

from prwarden_core.reporting import ReportWriter, enhanced_description_section


def test_default_report_path():
    writer = ReportWriter(reports_dir="out")
    ts = datetime(2026, 1, 22, 12, 16, 32)
    assert writer.default_report_path(7, "md", ts) == "out/pr-7-2026-01-22T12-16-32.md"
    assert writer.default_report_path(7, "json", ts, repository="api") == "out/api-pr-7-2026-01-22T12-16-32.json"


def test_write_markdown_report_creates_directories(tmp_path):
    writer = ReportWriter()
    path = tmp_path / "deep" / "dir" / "report.md"
    returned = writer.write_report("\n# Report\n\n**Decision**: APPROVED\n", "md", str(path))
    assert returned == str(path)
    assert path.read_text() == "# Report\n\n**Decision**: APPROVED"


def test_write_json_report_uses_fence_interior(tmp_path):
    path = tmp_path / "report.json"
    ReportWriter().write_report('Here:\n```json\n{"decision": "BLOCKED"}\n```', "json", str(path))
    assert path.read_text() == '{"decision": "BLOCKED"}'


def test_write_report_to_stdout(tmp_path, capsys, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert ReportWriter().write_report("# Report", "md", "-") == "-"
    assert capsys.readouterr().out == "# Report\n"
    assert list(tmp_path.iterdir()) == []


def test_append_enhanced_description(tmp_path):
    path = tmp_path / "report.md"
    path.write_text("# Report")
    ReportWriter().append_enhanced_description(str(path), "## Summary\nAdds X.")
    text = path.read_text()
    assert text.startswith("# Report\n\n---\n\n## Enhanced Description\n\n")
    assert text.endswith("## Summary\nAdds X.\n")


def test_append_enhanced_description_to_stdout(capsys):
    ReportWriter().append_enhanced_description("-", "## Summary")
    assert "## Enhanced Description" in capsys.readouterr().out


def test_section_layout():
    section = enhanced_description_section("body")
    assert section.startswith("\n\n---\n\n## Enhanced Description\n\n")
    assert "AI-generated" in section


def test_description_backup(tmp_path):
    writer = ReportWriter(backups_dir=str(tmp_path / "backups"))
    ts = datetime(2026, 1, 22, 12, 16, 32, 123456, tzinfo=timezone.utc)
    path = writer.write_description_backup(7, "Original *text*", ts)
    assert path.endswith("pr-7-description-2026-01-22T12-16-32.md")
    with open(path) as f:
        assert f.read() == "Original *text*"
