"""Session file discovery under ~/.claude.

Claude Code stores one JSONL file per session:

    ~/.claude/projects/<encoded-project-path>/<session-id>.jsonl
    ~/.claude/transcripts/<session-id>.jsonl      (older flat layout)

Sessions are addressed by full path or by a session-id prefix.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from tav.config import CLAUDE_DIR
from tav.exceptions import AmbiguousSessionError, SessionNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionInfo:
    """A session file and cheap stats about it."""

    path: Path
    session_id: str
    size: int
    modified: datetime
    entry_count: int


def _iter_dirs(path: Path) -> list[Path]:
    try:
        return sorted(p for p in path.iterdir() if p.is_dir())
    except OSError as e:
        logger.debug(f"Skipping unreadable directory {path}: {e}")
        return []


def _iter_jsonl(directory: Path) -> list[Path]:
    try:
        return sorted(p for p in directory.iterdir() if p.suffix == ".jsonl" and p.is_file())
    except OSError as e:
        logger.debug(f"Skipping unreadable directory {directory}: {e}")
        return []


def resolve_session_files(prefix: str, claude_dir: Path | None = None) -> list[Path]:
    """Find session files whose id starts with prefix.

    Args:
        prefix: Session id prefix
        claude_dir: Claude config dir (default ~/.claude)

    Returns:
        Matching paths, newest first, one per session id
    """
    base = claude_dir or CLAUDE_DIR
    directories = _iter_dirs(base / "projects")
    directories.append(base / "transcripts")

    matches: list[tuple[float, Path]] = []
    seen: set[str] = set()
    for directory in directories:
        if not directory.exists():
            continue
        for file in _iter_jsonl(directory):
            session_id = file.stem
            if not session_id.startswith(prefix) or session_id in seen:
                continue
            try:
                mtime = file.stat().st_mtime
            except OSError:
                continue
            matches.append((mtime, file))
            seen.add(session_id)

    matches.sort(key=lambda m: m[0], reverse=True)
    return [path for _, path in matches]


def _count_entries(path: Path) -> int:
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            return sum(1 for line in f if line.strip())
    except OSError:
        return 0


def list_sessions(limit: int = 10, claude_dir: Path | None = None) -> list[SessionInfo]:
    """List the most recently modified sessions under projects/.

    Args:
        limit: Maximum sessions to return
        claude_dir: Claude config dir (default ~/.claude)

    Returns:
        SessionInfo list, newest first
    """
    base = claude_dir or CLAUDE_DIR
    sessions = []
    for directory in _iter_dirs(base / "projects"):
        for file in _iter_jsonl(directory):
            try:
                stat = file.stat()
            except OSError:
                continue
            sessions.append(
                SessionInfo(
                    path=file,
                    session_id=file.stem,
                    size=stat.st_size,
                    modified=datetime.fromtimestamp(stat.st_mtime),
                    entry_count=_count_entries(file),
                )
            )

    sessions.sort(key=lambda s: s.modified, reverse=True)
    return sessions[:limit]


def resolve_target(target: str, claude_dir: Path | None = None) -> Path:
    """Turn a CLI target (path or session-id prefix) into one session file.

    Raises:
        SessionNotFoundError: Path missing or no prefix match
        AmbiguousSessionError: Prefix matches more than one session
    """
    if target.endswith(".jsonl") or os.sep in target or "/" in target:
        path = Path(target).expanduser()
        if not path.is_file():
            raise SessionNotFoundError(target)
        return path

    matches = resolve_session_files(target, claude_dir)
    if not matches:
        raise SessionNotFoundError(target)
    if len(matches) > 1:
        raise AmbiguousSessionError(target, [f"{m.stem[:8]}  {m}" for m in matches])
    return matches[0]


def format_bytes(size: int) -> str:
    """Format a byte count as B, KB or MB."""
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    return f"{size / (1024 * 1024):.1f}MB"
