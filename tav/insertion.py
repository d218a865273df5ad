"""Checkpoint insertion with chain reparenting.

Insertion is two-phase so that no insert shifts the file index of another:

1. Build every synthetic entry and record two side maps: which file index
   gets a synthetic after it, and which successor line gets a new parent.
2. Rebuild the line list in one pass, applying both maps.

Only chain successors are reparented. A branch that shares the anchor's
old parent keeps its parentUuid.

Synthetic uuids inserted by a repair are derived from the session and the
anchor/successor pair, so repairing the same original twice produces the
same bytes.
"""

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from tav.chain import ChainEntry
from tav.transcript import Entry, ParsedLine, SessionMetadata, format_timestamp, parse_timestamp, serialize_entry

logger = logging.getLogger(__name__)

CHECKPOINT_NAMESPACE = uuid.UUID("6f1c2a4e-8b0d-5f3a-9c7e-2d4b6a8c0e1f")


@dataclass(frozen=True)
class InsertionResult:
    """Rebuilt lines and what was inserted."""

    lines: list[ParsedLine]
    inserted: int
    synthetic_uuids: list[str] = field(default_factory=list)


def midpoint_timestamp(before: str | None, after: str | None) -> str:
    """Return the timestamp halfway between two ISO timestamps.

    Falls back to whichever side is present (before first), then to now,
    when either side can't be parsed.
    """
    t1 = parse_timestamp(before)
    t2 = parse_timestamp(after)
    if t1 is None or t2 is None:
        return before or after or format_timestamp(datetime.now(UTC))

    # Floor to whole milliseconds
    delta_ms = int((t2 - t1) / timedelta(milliseconds=1))
    return format_timestamp(t1 + timedelta(milliseconds=delta_ms // 2))


def checkpoint_uuid(session_id: str, anchor_uuid: str, successor_uuid: str) -> str:
    """Derive a stable uuid for the checkpoint between anchor and successor."""
    return str(uuid.uuid5(CHECKPOINT_NAMESPACE, f"{session_id}:{anchor_uuid}:{successor_uuid}"))


def create_synthetic_entry(
    metadata: SessionMetadata,
    parent_uuid: str,
    timestamp: str,
    marker: str,
    entry_uuid: str | None = None,
) -> Entry:
    """Create a user entry the consuming application treats as a rewind point.

    Mirrors the field layout of a real user entry, including gitBranch and
    slug when the session has them. A random uuid is used unless one is given.
    """
    entry: Entry = {
        "parentUuid": parent_uuid,
        "isSidechain": False,
        "userType": "external",
        "cwd": metadata.cwd,
        "sessionId": metadata.session_id,
        "version": metadata.version,
        "type": "user",
        "message": {"role": "user", "content": marker},
        "uuid": entry_uuid or str(uuid.uuid4()),
        "timestamp": timestamp,
    }
    if metadata.git_branch:
        entry["gitBranch"] = metadata.git_branch
    if metadata.slug:
        entry["slug"] = metadata.slug
    return entry


def insert_chain_bookmarks(
    lines: list[ParsedLine],
    chain: Sequence[ChainEntry],
    break_points: Sequence[int],
    metadata: SessionMetadata,
    marker: str,
) -> InsertionResult:
    """Insert a synthetic checkpoint after each break point's anchor.

    Args:
        lines: Original parsed lines in file order
        chain: Chain the break points index into
        break_points: Accepted chain indices
        metadata: Provenance for synthetic entries
        marker: Checkpoint message content

    Returns:
        InsertionResult with the rebuilt lines (input is not modified)
    """
    if not break_points:
        return InsertionResult(lines=list(lines), inserted=0)

    insert_after: dict[int, ParsedLine] = {}
    reparents: dict[int, str] = {}
    synthetic_uuids: list[str] = []

    for chain_idx in break_points:
        if chain_idx < 0 or chain_idx + 1 >= len(chain):
            logger.warning(f"Skipping break point {chain_idx}: no successor on chain")
            continue
        anchor = chain[chain_idx]
        successor = chain[chain_idx + 1]

        timestamp = midpoint_timestamp(anchor.entry.get("timestamp"), successor.entry.get("timestamp"))
        synthetic = create_synthetic_entry(
            metadata,
            anchor.uuid,
            timestamp,
            marker,
            entry_uuid=checkpoint_uuid(metadata.session_id, anchor.uuid, successor.uuid),
        )

        insert_after[anchor.file_index] = ParsedLine(entry=synthetic, raw=serialize_entry(synthetic))
        reparents[successor.file_index] = synthetic["uuid"]
        synthetic_uuids.append(synthetic["uuid"])

    rebuilt: list[ParsedLine] = []
    for i, line in enumerate(lines):
        new_parent = reparents.get(i)
        if new_parent is not None:
            modified = {**line.entry, "parentUuid": new_parent}
            line = ParsedLine(entry=modified, raw=serialize_entry(modified))
        rebuilt.append(line)

        insertion = insert_after.get(i)
        if insertion is not None:
            rebuilt.append(insertion)

    logger.debug(f"Inserted {len(insert_after)} checkpoints, reparented {len(reparents)} entries")
    return InsertionResult(lines=rebuilt, inserted=len(insert_after), synthetic_uuids=synthetic_uuids)
