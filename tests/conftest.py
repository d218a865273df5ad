"""Shared fixtures for tav tests.

Sessions are built with SessionBuilder, which links each new entry to the
previous one through parentUuid and advances a fake clock, so tests only
spell out what matters to them.
"""

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from tav.transcript import ParsedLine, parse_jsonl

SESSION_ID = "3f2a9c1d-0b7e-4c55-9a1e-6d2f8b4c7e01"
START = datetime(2026, 1, 15, 10, 0, 0, tzinfo=UTC)

_LAST = object()


def ts(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class SessionBuilder:
    """Builds a Claude Code session transcript one entry at a time."""

    def __init__(self, session_id: str = SESSION_ID, step_seconds: float = 5):
        self.session_id = session_id
        self.step = timedelta(seconds=step_seconds)
        self.clock = START
        self.rows: list[dict | str] = []
        self.last_uuid: str | None = None
        self._counter = 0

    def _stamp(self, gap_seconds: float | None) -> str:
        if self.rows:
            self.clock += timedelta(seconds=gap_seconds) if gap_seconds is not None else self.step
        return ts(self.clock)

    def _add(self, entry: dict, parent) -> dict:
        self._counter += 1
        entry_uuid = entry.pop("uuid", None) or f"00000000-0000-4000-8000-{self._counter:012d}"
        entry = {
            "parentUuid": self.last_uuid if parent is _LAST else parent,
            "isSidechain": False,
            **entry,
            "uuid": entry_uuid,
        }
        self.rows.append(entry)
        self.last_uuid = entry_uuid
        return entry

    def user(self, text: str = "continue", parent=_LAST, gap: float | None = None, **extra) -> dict:
        return self._add(
            {
                "userType": "external",
                "cwd": "/home/me/app",
                "sessionId": self.session_id,
                "version": "2.1.3",
                "gitBranch": "main",
                "type": "user",
                "message": {"role": "user", "content": text},
                "timestamp": self._stamp(gap),
                **extra,
            },
            parent,
        )

    def tool_result(self, parent=_LAST, gap: float | None = None) -> dict:
        return self.user(
            text=None,
            parent=parent,
            gap=gap,
            message={
                "role": "user",
                "content": [{"type": "tool_result", "tool_use_id": "toolu_01", "content": "ok"}],
            },
        )

    def assistant(
        self,
        text: str = "Done.",
        parent=_LAST,
        gap: float | None = None,
        content: list | None = None,
        **extra,
    ) -> dict:
        message = {
            "model": "claude-sonnet-4-5",
            "role": "assistant",
            "content": content if content is not None else [{"type": "text", "text": text}],
            "stop_reason": "end_turn",
            "usage": {"input_tokens": 1200, "output_tokens": 85},
        }
        return self._add(
            {
                "sessionId": self.session_id,
                "type": "assistant",
                "message": message,
                "timestamp": self._stamp(gap),
                **extra,
            },
            parent,
        )

    def tool_use(self, parent=_LAST, gap: float | None = None) -> dict:
        return self.assistant(
            parent=parent,
            gap=gap,
            content=[{"type": "tool_use", "id": "toolu_01", "name": "Read", "input": {"file_path": "a.py"}}],
        )

    def dead(self, parent=_LAST, gap: float | None = None) -> dict:
        entry = self.assistant("Prompt is too long", parent=parent, gap=gap)
        entry["message"]["model"] = "<synthetic>"
        entry["message"]["usage"] = {"input_tokens": 0, "output_tokens": 0}
        entry["isApiErrorMessage"] = True
        return entry

    def system(self, subtype: str, parent=_LAST, gap: float | None = None, **extra) -> dict:
        return self._add(
            {
                "sessionId": self.session_id,
                "type": "system",
                "subtype": subtype,
                "timestamp": self._stamp(gap),
                **extra,
            },
            parent,
        )

    def turns(self, count: int) -> "SessionBuilder":
        """User prompt followed by an assistant reply, repeated."""
        for n in range(count):
            self.user(f"question {n}")
            self.assistant(f"answer {n}")
        return self

    def malformed(self, raw: str = '{"type": "user", "broken') -> None:
        self.rows.append(raw)

    def text(self) -> str:
        out = []
        for row in self.rows:
            out.append(row if isinstance(row, str) else json.dumps(row, ensure_ascii=False, separators=(",", ":")))
        return "\n".join(out) + "\n"

    def lines(self) -> list[ParsedLine]:
        return parse_jsonl(self.text())

    def write(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.text(), encoding="utf-8")
        return path


@pytest.fixture
def builder() -> SessionBuilder:
    return SessionBuilder()


@pytest.fixture
def session_file(tmp_path: Path, builder: SessionBuilder) -> Path:
    """A four-turn session written to disk."""
    builder.turns(4)
    return builder.write(tmp_path / f"{SESSION_ID}.jsonl")


@pytest.fixture
def claude_dir(tmp_path: Path, monkeypatch) -> Path:
    """Temporary ~/.claude with config and session lookup pointed at it."""
    base = tmp_path / ".claude"
    (base / "projects").mkdir(parents=True)
    monkeypatch.setattr("tav.config.CONFIG_PATH", base / "tav" / "config.yaml")
    monkeypatch.setattr("tav.sessions.CLAUDE_DIR", base)
    return base
