"""Tests for the command line interface."""

import json
from pathlib import Path

from typer.testing import CliRunner

from agent_tracker.cli import app

runner = CliRunner()


class TestTranscriptCommand:
    """Tests for `agent-tracker transcript`."""

    def test_outputs_entries(self, sample_transcript: Path) -> None:
        """The parsed transcript is printed as a JSON array."""
        result = runner.invoke(app, ["--log-level", "ERROR", "transcript", str(sample_transcript)])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert len(data) == 9
        assert data[0]["type"] == "file-history"
        assert data[6]["content"] == "$ git status\n\nOn branch main"
        assert "tool_name" not in data[1]

    def test_limit_and_conversation(self, sample_transcript: Path) -> None:
        """Filters combine: conversation only, then the last N."""
        result = runner.invoke(
            app,
            [
                "--log-level", "ERROR",
                "transcript", str(sample_transcript),
                "--conversation", "--limit", "2", "--compact",
            ],
        )
        assert result.exit_code == 0
        assert "\n" not in result.stdout.strip()
        data = json.loads(result.stdout)
        assert [d["type"] for d in data] == ["assistant", "user"]

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing transcript exits with an error."""
        result = runner.invoke(app, ["transcript", str(tmp_path / "missing.jsonl")])
        assert result.exit_code == 1
        assert "File not found" in result.output


class TestSessionsCommand:
    """Tests for `agent-tracker sessions`."""

    def test_json_snapshot(self, sample_events: Path, tmp_path: Path) -> None:
        """Old ended sessions are swept away; idle ones are reported inactive."""
        events_file = tmp_path / "sessions.jsonl"
        events_file.write_bytes(sample_events.read_bytes())

        result = runner.invoke(app, ["sessions", "--events-file", str(events_file), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [s["id"] for s in data] == ["sess-b"]
        assert data[0]["status"] == "inactive"
        assert data[0]["awaiting_input"] is True

    def test_text_snapshot(self, tmp_path: Path) -> None:
        """An empty events file is created and reported as zero sessions."""
        events_file = tmp_path / "new" / "sessions.jsonl"
        result = runner.invoke(app, ["sessions", "--events-file", str(events_file)])
        assert result.exit_code == 0
        assert result.stdout.startswith("0 sessions: 0 active")
        assert events_file.exists()
