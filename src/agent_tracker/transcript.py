"""JSONL parser for agent transcripts."""

import json
import logging
import re
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from .models import CompactMetadata, EntryType, ParsedTranscriptEntry, ParseResult

logger = logging.getLogger("agent-tracker.transcript")

# Records inspected after a bash input when looking for its output
LOOKAHEAD = 3

BASH_INPUT_RE = re.compile(r"<bash-input>([\s\S]*?)</bash-input>")
BASH_STDOUT_RE = re.compile(r"<bash-stdout>([\s\S]*?)</bash-stdout>")
BASH_STDERR_RE = re.compile(r"<bash-stderr>([\s\S]*?)</bash-stderr>")


def load_records(path: Path) -> list[dict]:
    """Load JSONL records, skipping blank and malformed lines."""
    records = []
    with open(path, encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                rec = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(f"Skipping malformed JSON at {path}:{line_num}: {e}")
                continue
            if isinstance(rec, dict):
                records.append(rec)
            else:
                logger.warning(f"Skipping non-object record at {path}:{line_num}")
    return records


def get_content_blocks(message: dict) -> list[dict]:
    """Extract content blocks from message."""
    content = message.get("content", [])
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    if not isinstance(content, list):
        return []
    return [b for b in content if isinstance(b, dict)]


def flatten_text(content: object) -> str | None:
    """Join the text of a message's content.

    A string is returned as-is and a block list yields its text blocks joined
    by blank lines. Any other shape returns None.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n\n".join(
            str(b.get("text", ""))
            for b in content
            if isinstance(b, dict) and b.get("type") == "text"
        )
    return None


def flatten_tool_result(content: object) -> str:
    """Tool result content may be a string or a list of text parts."""
    if isinstance(content, list):
        texts = [str(c.get("text", "")) for c in content if isinstance(c, dict)]
        return "\n".join(texts)
    if content is None:
        return ""
    return str(content)


def is_bash_input(content: str) -> bool:
    return BASH_INPUT_RE.search(content) is not None


def is_bash_output(content: str) -> bool:
    return BASH_STDOUT_RE.search(content) is not None or BASH_STDERR_RE.search(content) is not None


def _extract(pattern: re.Pattern, content: str) -> str:
    match = pattern.search(content)
    return match.group(1).strip() if match else ""


def _str_or_none(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _int_or_zero(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return 0
    try:
        return int(value)
    except (ValueError, OverflowError):
        return 0


def is_system_record(rec: dict) -> bool:
    """Sidechain, system and meta records are not part of the user conversation."""
    return rec.get("isSidechain") is True or rec.get("type") == "system" or rec.get("isMeta") is True


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 timestamp, returning None when it is missing or invalid."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _entry(rec: dict, entry_type: EntryType, content: str, **fields) -> ParsedTranscriptEntry:
    fields.setdefault("is_system_message", is_system_record(rec))
    return ParsedTranscriptEntry(
        uuid=str(rec.get("uuid") or ""),
        timestamp=parse_timestamp(rec.get("timestamp")),
        type=entry_type,
        content=content,
        **fields,
    )


def _merge_bash(rec: dict, content: str, upcoming: Sequence[dict]) -> ParseResult:
    command = _extract(BASH_INPUT_RE, content)

    for offset, nxt in enumerate(upcoming[:LOOKAHEAD]):
        if nxt.get("type") != "user" or not isinstance(nxt.get("message"), dict):
            continue
        next_content = flatten_text(nxt["message"].get("content"))
        if next_content is None or not is_bash_output(next_content):
            continue

        merged = f"$ {command}"
        stdout = _extract(BASH_STDOUT_RE, next_content)
        stderr = _extract(BASH_STDERR_RE, next_content)
        if stdout:
            merged += f"\n\n{stdout}"
        if stderr:
            merged += f"\n\n[stderr]\n{stderr}"
        # Everything up to and including the output record is absorbed
        return ParseResult(_entry(rec, EntryType.USER, merged), offset + 1)

    return ParseResult(_entry(rec, EntryType.USER, f"$ {command}"), 0)


def _parse_user(rec: dict, message: dict, upcoming: Sequence[dict]) -> ParseResult:
    blocks = message.get("content")
    if isinstance(blocks, list):
        for block in blocks:
            if isinstance(block, dict) and block.get("type") == "tool_result":
                return ParseResult(
                    _entry(
                        rec,
                        EntryType.TOOL_RESULT,
                        flatten_tool_result(block.get("content")),
                        tool_use_id=_str_or_none(block.get("tool_use_id")),
                        is_error=block.get("is_error") is True,
                    )
                )

    content = flatten_text(blocks) or ""
    if not content.strip():
        return ParseResult(None)

    if is_bash_input(content):
        return _merge_bash(rec, content, upcoming)

    if is_bash_output(content):
        stdout = _extract(BASH_STDOUT_RE, content)
        stderr = _extract(BASH_STDERR_RE, content)
        parts = [stdout] if stdout else []
        if stderr:
            parts.append(f"[stderr]\n{stderr}")
        if not parts:
            return ParseResult(None)
        return ParseResult(_entry(rec, EntryType.USER, "\n\n".join(parts)))

    if rec.get("isMeta"):
        return ParseResult(_entry(rec, EntryType.META, content, is_system_message=True))

    return ParseResult(_entry(rec, EntryType.USER, content))


def _parse_assistant(rec: dict, message: dict) -> ParseResult:
    blocks = get_content_blocks(message)

    # First match wins: thinking, then text, then tool_use
    for block in blocks:
        if block.get("type") == "thinking":
            return ParseResult(
                _entry(rec, EntryType.THINKING, str(block.get("thinking", "")), is_system_message=True)
            )

    text = "\n\n".join(str(b.get("text", "")) for b in blocks if b.get("type") == "text")
    if text:
        return ParseResult(_entry(rec, EntryType.ASSISTANT, text))

    for block in blocks:
        if block.get("type") == "tool_use":
            name = str(block.get("name") or "?")
            tool_input = block.get("input")
            return ParseResult(
                _entry(
                    rec,
                    EntryType.TOOL_USE,
                    f"Used tool: {name}",
                    tool_name=name,
                    tool_id=_str_or_none(block.get("id")),
                    tool_input=tool_input if isinstance(tool_input, dict) else None,
                )
            )

    return ParseResult(None)


def _parse_system(rec: dict) -> ParseResult:
    compact = rec.get("compactMetadata")
    compact_metadata = None
    if isinstance(compact, dict):
        compact_metadata = CompactMetadata(
            trigger=str(compact.get("trigger") or "unknown"),
            pre_tokens=_int_or_zero(compact.get("preTokens")),
        )
    return ParseResult(
        _entry(
            rec,
            EntryType.SYSTEM,
            str(rec.get("content") or "System event"),
            system_subtype=_str_or_none(rec.get("subtype")),
            compact_metadata=compact_metadata,
        )
    )


def _parse_file_history(rec: dict) -> ParseResult:
    snapshot = rec.get("snapshot")
    if not isinstance(snapshot, dict):
        snapshot = {}
    backups = snapshot.get("trackedFileBackups")
    file_count = len(backups) if isinstance(backups, dict) else 0

    entry = _entry(
        rec,
        EntryType.FILE_HISTORY,
        f"File history snapshot ({file_count} files tracked)",
        file_count=file_count,
        is_system_message=True,
    )
    if not entry.uuid and rec.get("messageId"):
        entry.uuid = str(rec["messageId"])
    if entry.timestamp is None:
        entry.timestamp = parse_timestamp(snapshot.get("timestamp"))
    return ParseResult(entry)


def parse_entry(rec: dict, upcoming: Sequence[dict] = ()) -> ParseResult:
    """Normalize one raw transcript record for display.

    Args:
        rec: The record to parse
        upcoming: Records that follow it in the file; only the first
            LOOKAHEAD are inspected, and only to pair a bash input with
            its output

    Returns:
        ParseResult with the entry (None when the record renders nothing)
        and the number of upcoming records merged into it
    """
    rec_type = rec.get("type")
    message = rec.get("message")

    if rec_type == "user" and isinstance(message, dict):
        return _parse_user(rec, message, upcoming)
    if rec_type == "assistant" and isinstance(message, dict):
        return _parse_assistant(rec, message)
    if rec_type == "system":
        return _parse_system(rec)
    if rec_type == "file-history-snapshot":
        return _parse_file_history(rec)
    return ParseResult(None)


def parse_records(records: Sequence[dict]) -> list[ParsedTranscriptEntry]:
    """Parse buffered records with full lookahead, skipping merged records."""
    entries: list[ParsedTranscriptEntry] = []
    skip = 0
    for i, rec in enumerate(records):
        if skip > 0:
            skip -= 1
            continue
        try:
            parsed, consumed = parse_entry(rec, records[i + 1 : i + 1 + LOOKAHEAD])
        except (ValidationError, ValueError) as e:
            logger.warning(f"Skipping unparseable record {rec.get('uuid', '?')}: {e}")
            continue
        if parsed:
            entries.append(parsed)
        skip = consumed
    return entries


def read_transcript(path: Path) -> list[ParsedTranscriptEntry]:
    """Main entry point: transcript JSONL path -> parsed entries.

    Raises:
        FileNotFoundError: if the transcript does not exist
    """
    return parse_records(load_records(Path(path)))


def get_recent_entries(path: Path, limit: int = 5) -> list[ParsedTranscriptEntry]:
    """Get the last ``limit`` parsed entries of a transcript."""
    return read_transcript(path)[-limit:] if limit > 0 else []


def get_last_entry_timestamp(path: Path) -> datetime | None:
    """Timestamp of the last valid record, or None if there is none."""
    path = Path(path)
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return None

    for line in reversed(lines):
        if not line.strip():
            continue
        try:
            rec = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(rec, dict):
            timestamp = parse_timestamp(rec.get("timestamp"))
            if timestamp is not None:
                return timestamp
    return None


def filter_user_conversation(entries: Sequence[ParsedTranscriptEntry]) -> list[ParsedTranscriptEntry]:
    """Drop system messages and tool results, leaving the visible conversation."""
    return [
        e for e in entries if not e.is_system_message and e.type != EntryType.TOOL_RESULT
    ]


def get_recent_conversation(
    entries: Sequence[ParsedTranscriptEntry], limit: int = 5
) -> list[ParsedTranscriptEntry]:
    """Get the most recent ``limit`` conversation entries."""
    filtered = filter_user_conversation(entries)
    return filtered[-limit:] if limit > 0 else []
