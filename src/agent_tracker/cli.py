"""CLI entry point for agent-tracker."""

import json
import logging
import time
from pathlib import Path

import typer

from .config import TrackerConfig

APP_HELP = """
Track coding-agent sessions from their hook events and transcripts.

\b
Events are read from:
  ~/.agent-tracker/sessions.jsonl
(override with AGENT_TRACKER_EVENTS_FILE or --events-file)
"""

app = typer.Typer(add_completion=False, help=APP_HELP)


@app.callback()
def main(
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (default: AGENT_TRACKER_LOG_LEVEL or WARNING)"
    ),
) -> None:
    level = (log_level or TrackerConfig.from_env().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def _session_line(session) -> str:
    marker = "!" if session.awaiting_input else " "
    summary = f"  {session.work_summary}" if session.work_summary else ""
    return f"{marker} {session.status.value:<8} {session.id}  {session.cwd}{summary}"


def _counts_line(counts) -> str:
    return (
        f"{counts.total} sessions: {counts.active} active, {counts.inactive} inactive, "
        f"{counts.ended} ended, {counts.awaiting_input} awaiting input"
    )


SESSIONS_HELP = """
Print a snapshot of the tracked sessions.

Sessions waiting on the user are listed first (marked with !), then active,
inactive and ended sessions, most recent activity first.

\b
Examples:
  agent-tracker sessions
  agent-tracker sessions --json | jq '.[] | select(.awaiting_input)'
"""


@app.command(help=SESSIONS_HELP)
def sessions(
    events_file: Path | None = typer.Option(None, "--events-file", help="Path to sessions.jsonl"),
    as_json: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    from .tracker import SessionTrackerService

    config = TrackerConfig.from_env(events_file)
    service = SessionTrackerService.from_config(config, watch=False)
    service.start()
    try:
        service.update_session_statuses()
        result = service.get_sessions()
    finally:
        service.stop()

    if as_json:
        typer.echo(json.dumps([s.model_dump(mode="json") for s in result], indent=2))
        return

    typer.echo(_counts_line(service.get_session_counts()))
    for session in result:
        typer.echo(_session_line(session))


TRANSCRIPT_HELP = """
Output a parsed transcript as JSON.

Bash commands typed by the user are merged with their output.

\b
Examples:
  agent-tracker transcript transcript.jsonl --limit 10
  agent-tracker transcript transcript.jsonl --conversation --compact | jq '.[].content'
"""


@app.command(help=TRANSCRIPT_HELP)
def transcript(
    jsonl_path: Path = typer.Argument(..., help="Path to JSONL transcript file"),
    limit: int | None = typer.Option(None, "--limit", help="Only the last N entries"),
    conversation: bool = typer.Option(
        False, "--conversation", help="Drop system messages and tool results"
    ),
    compact: bool = typer.Option(False, "--compact", help="No indentation (for piping)"),
) -> None:
    from .transcript import filter_user_conversation, read_transcript

    if not jsonl_path.exists():
        typer.echo(f"Error: File not found: {jsonl_path}", err=True)
        raise typer.Exit(1)

    entries = read_transcript(jsonl_path)
    if conversation:
        entries = filter_user_conversation(entries)
    if limit is not None:
        entries = entries[-limit:] if limit > 0 else []

    data = [e.model_dump(mode="json", exclude_none=True) for e in entries]
    typer.echo(json.dumps(data, indent=None if compact else 2))


@app.command(help="Watch sessions live, printing counts whenever they change.")
def watch(
    events_file: Path | None = typer.Option(None, "--events-file", help="Path to sessions.jsonl"),
    interval: float | None = typer.Option(
        None, "--interval", help="Seconds between status sweeps (default 10)"
    ),
) -> None:
    from .tracker import SessionTrackerService

    config = TrackerConfig.from_env(events_file)
    service = SessionTrackerService.from_config(config)
    service.subscribe(lambda: typer.echo(_counts_line(service.get_session_counts())))
    service.start()
    sweep_every = interval if interval is not None else config.status_interval_ms / 1000
    try:
        while True:
            time.sleep(sweep_every)
            service.update_session_statuses()
    except KeyboardInterrupt:
        pass
    finally:
        service.stop()


@app.command(help="Follow a transcript, printing each new entry as a JSON line.")
def tail(
    jsonl_path: Path = typer.Argument(..., help="Path to JSONL transcript file"),
) -> None:
    from .transcript_watcher import TranscriptWatcher

    def print_entries(entries) -> None:
        for entry in entries:
            typer.echo(entry.model_dump_json(exclude_none=True))

    def report(error: Exception) -> None:
        typer.echo(f"Error: {error}", err=True)

    watcher = TranscriptWatcher(jsonl_path, print_entries, report)
    watcher.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        watcher.stop()


if __name__ == "__main__":
    app()
