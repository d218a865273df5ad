"""Conversation chain reconstruction.

Claude Code's rewind UI follows ``parentUuid`` pointers backward from the
most recent entry. File order is not conversation order: sidechains,
branches and hook records interleave with the main path. The chain built
here is the path the UI actually walks, oldest first.
"""

import logging
from dataclasses import dataclass

from tav.transcript import Entry, ParsedLine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainEntry:
    """An entry on the chain and its index in the original file."""

    entry: Entry
    file_index: int

    @property
    def uuid(self) -> str:
        return self.entry["uuid"]


def build_chain(lines: list[ParsedLine]) -> list[ChainEntry]:
    """Build the parentUuid chain ending at the last uuid-bearing entry.

    Entries off the path (branches sharing an ancestor, orphans) stay in the
    file but are not part of the chain. A visited set stops the walk on
    cyclic input.

    Args:
        lines: Parsed session lines in file order

    Returns:
        ChainEntry list, oldest first (empty if no entry has a uuid)
    """
    by_uuid: dict[str, ChainEntry] = {}
    last: ChainEntry | None = None
    for i, line in enumerate(lines):
        uuid = line.uuid
        if uuid is None:
            continue
        node = ChainEntry(entry=line.entry, file_index=i)
        by_uuid[uuid] = node
        last = node

    if last is None:
        return []

    chain: list[ChainEntry] = []
    visited: set[str] = set()
    current: ChainEntry | None = last
    while current is not None:
        if current.uuid in visited:
            logger.warning(f"Cycle in parentUuid chain at {current.uuid}, stopping walk")
            break
        visited.add(current.uuid)
        chain.append(current)

        parent = current.entry.get("parentUuid")
        if not isinstance(parent, str) or not parent:
            break
        current = by_uuid.get(parent)
        if current is None:
            logger.debug(f"Chain ends at dangling parentUuid {parent}")

    chain.reverse()
    logger.debug(f"Built chain of {len(chain)} entries from {len(lines)} lines")
    return chain


def find_last_compact_boundary(lines: list[ParsedLine]) -> int:
    """Return the file index of the last compact_boundary entry, or -1."""
    for i in range(len(lines) - 1, -1, -1):
        entry = lines[i].entry
        if entry is not None and entry.get("type") == "system" and entry.get("subtype") == "compact_boundary":
            return i
    return -1
