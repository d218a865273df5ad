"""Transcript model for Claude Code JSONL session files.

Reads and writes session transcripts with round-trip fidelity. A session
file is one JSON object per line; entries are linked into the conversation
path by ``parentUuid`` pointers.

Architecture:
- Entries stay plain dicts so unknown fields survive a rewrite untouched
- ParsedLine pairs the decoded entry with its original text
- Malformed lines keep ``entry=None`` and are written back verbatim
- SessionMetadata is the provenance template for synthetic entries

Entry type distribution in real sessions is dominated by ``progress`` and
``user`` (tool results) records; ``assistant`` entries carry
``message.usage`` and ``system`` entries carry a ``subtype``.
"""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

Entry = dict[str, Any]


@dataclass(frozen=True)
class ParsedLine:
    """A JSONL line: the decoded entry (or None when malformed) and its raw text."""

    entry: Entry | None
    raw: str

    @property
    def uuid(self) -> str | None:
        if self.entry is None:
            return None
        value = self.entry.get("uuid")
        return value if isinstance(value, str) and value else None

    @property
    def parent_uuid(self) -> str | None:
        if self.entry is None:
            return None
        value = self.entry.get("parentUuid")
        return value if isinstance(value, str) and value else None


@dataclass(frozen=True)
class SessionMetadata:
    """Provenance copied from the first real user entry into synthetic entries."""

    session_id: str
    version: str
    cwd: str
    git_branch: str | None = None
    slug: str | None = None


def parse_jsonl(content: str) -> list[ParsedLine]:
    """Parse JSONL text into lines.

    Blank lines are dropped. Lines that are not valid JSON, or that decode to
    something other than an object, are kept with ``entry=None`` so they can
    be written back unchanged.

    Args:
        content: Raw file content

    Returns:
        ParsedLine list in file order
    """
    lines = []
    for raw in content.split("\n"):
        if not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            lines.append(ParsedLine(entry=None, raw=raw))
            continue
        if not isinstance(data, dict):
            lines.append(ParsedLine(entry=None, raw=raw))
            continue
        lines.append(ParsedLine(entry=data, raw=raw))
    return lines


def serialize_entry(entry: Entry) -> str:
    """Serialize an entry as a compact single JSON line."""
    return json.dumps(entry, ensure_ascii=False, separators=(",", ":"))


def render_jsonl(lines: list[ParsedLine]) -> str:
    """Render lines back to JSONL text with a trailing newline."""
    return "\n".join(line.raw for line in lines) + "\n"


def read_session(path: Path) -> list[ParsedLine]:
    """Read and parse a session file.

    Raises:
        OSError: If the file can't be read
        UnicodeDecodeError: If the file isn't UTF-8
    """
    content = path.read_text(encoding="utf-8")
    return parse_jsonl(content)


def get_message(entry: Entry) -> dict[str, Any]:
    """Return the nested message object, or an empty dict."""
    message = entry.get("message")
    return message if isinstance(message, dict) else {}


def get_content(entry: Entry) -> Any:
    """Return ``message.content`` (a string, a list of blocks, or None)."""
    return get_message(entry).get("content")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format a datetime as UTC ISO-8601 with milliseconds and a Z suffix."""
    value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def iter_text_blocks(content: Any) -> list[str]:
    """Extract text from message content.

    Content can be:
    - A string
    - A list of content blocks; only ``type == "text"`` blocks contribute
    """
    if isinstance(content, str):
        return [content]

    texts = []
    if isinstance(content, list):
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text":
                text = block.get("text")
                if isinstance(text, str):
                    texts.append(text)
    return texts


def extract_metadata(lines: list[ParsedLine]) -> SessionMetadata | None:
    """Extract session metadata from the first user entry carrying a sessionId.

    Args:
        lines: Parsed session lines

    Returns:
        SessionMetadata, or None if no user entry qualifies
    """
    for line in lines:
        entry = line.entry
        if entry is None:
            continue
        if entry.get("type") == "user" and entry.get("sessionId"):
            git_branch = entry.get("gitBranch")
            slug = entry.get("slug")
            return SessionMetadata(
                session_id=entry["sessionId"],
                version=entry.get("version") or "1",
                cwd=entry.get("cwd") or "",
                git_branch=git_branch if isinstance(git_branch, str) and git_branch else None,
                slug=slug if isinstance(slug, str) and slug else None,
            )
    return None


def count_marker_entries(lines: list[ParsedLine], marker: str) -> int:
    """Count user entries whose content is exactly the checkpoint marker.

    Heuristic for files that already carry checkpoints from an earlier repair.
    """
    needle = marker.strip()
    if not needle:
        return 0

    count = 0
    for line in lines:
        entry = line.entry
        if entry is None or entry.get("type") != "user":
            continue
        content = get_content(entry)
        if isinstance(content, str) and content.strip() == needle:
            count += 1
    return count
