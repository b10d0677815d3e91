"""Tests for the command-line interface."""

from __future__ import annotations

import json

from typer.testing import CliRunner

from medtrack.cli.commands import app

runner = CliRunner()

ENTRY = {
    "id": "e1",
    "type": "control",
    "title": "Control Urología",
    "dateTime": "2024-03-10T09:30:00",
    "location": "Clínica X",
}


class TestExportIcs:
    """Tests for the export-ics command."""

    def test_writes_calendar_file(self, tmp_path) -> None:
        entry_file = tmp_path / "entry.json"
        entry_file.write_text(json.dumps(ENTRY), encoding="utf-8")
        out = tmp_path / "out.ics"

        result = runner.invoke(app, ["export-ics", str(entry_file), "--out", str(out)])

        assert result.exit_code == 0, result.output
        payload = out.read_bytes().decode("utf-8")
        assert payload.startswith("BEGIN:VCALENDAR\r\n")
        assert "LOCATION:Clínica X\r\n" in payload

    def test_default_filename_from_title(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "entry.json").write_text(json.dumps(ENTRY), encoding="utf-8")

        result = runner.invoke(app, ["export-ics", "entry.json"])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "control-urologia.ics").exists()

    def test_accepts_entry_and_professional_wrapper(self, tmp_path) -> None:
        entry_file = tmp_path / "request.json"
        entry_file.write_text(json.dumps({
            "entry": {**ENTRY, "location": None},
            "professional": {"name": "Dr. Pérez", "specialty": "Oncología", "center": "Hospital Y"},
        }), encoding="utf-8")
        out = tmp_path / "out.ics"

        result = runner.invoke(app, ["export-ics", str(entry_file), "-o", str(out)])

        assert result.exit_code == 0, result.output
        payload = out.read_text(encoding="utf-8")
        assert "LOCATION:Hospital Y" in payload
        assert "Profesional: Dr. Pérez (Oncología)" in payload

    def test_professional_option(self, tmp_path) -> None:
        entry_file = tmp_path / "entry.json"
        entry_file.write_text(json.dumps(ENTRY), encoding="utf-8")
        professional_file = tmp_path / "pro.json"
        professional_file.write_text(json.dumps({"name": "Dra. Soto", "specialty": "Urología"}), encoding="utf-8")
        out = tmp_path / "out.ics"

        result = runner.invoke(app, ["export-ics", str(entry_file), "-p", str(professional_file), "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert "Profesional: Dra. Soto (Urología)" in out.read_text(encoding="utf-8")

    def test_invalid_entry_exits_with_error(self, tmp_path) -> None:
        entry_file = tmp_path / "entry.json"
        entry_file.write_text(json.dumps({**ENTRY, "title": ""}), encoding="utf-8")
        out = tmp_path / "out.ics"

        result = runner.invoke(app, ["export-ics", str(entry_file), "-o", str(out)])

        assert result.exit_code == 1
        assert not out.exists()

    def test_invalid_json(self, tmp_path) -> None:
        entry_file = tmp_path / "entry.json"
        entry_file.write_text("{not json", encoding="utf-8")

        result = runner.invoke(app, ["export-ics", str(entry_file)])

        assert result.exit_code == 1


class TestSummary:
    """Tests for the summary command."""

    def test_empty_summary(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        import medtrack.database as db
        db._engine = None
        db._session_factory = None

        result = runner.invoke(app, ["summary"])

        assert result.exit_code == 0, result.output
        assert "Hechos" in result.output
        assert "Control" in result.output
