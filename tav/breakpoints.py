"""Break point selection on the conversation chain.

A break point is a chain index ``i``: a checkpoint goes after ``chain[i]``
(the anchor) and ``chain[i + 1]`` (the successor) is reparented onto it.

Candidates come from three criteria, any one of which triggers:

1. every ``interval`` assistant entries since the last accepted break
2. a ``system`` entry with subtype ``turn_duration`` (natural turn end)
3. a gap of more than 60 seconds between adjacent chain entries

Each candidate is snapped forward to the nearest valid rewind point. The
rewind UI only lists checkpoints whose successor is a visible assistant
reply, and nothing may be placed in the death zone, so many raw candidates
move one or two positions before they are accepted.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from tav.chain import ChainEntry
from tav.death import find_death_index, has_text_content_block, is_dead_assistant
from tav.transcript import Entry, parse_timestamp

logger = logging.getLogger(__name__)

TIME_GAP_MS = 60_000

SuccessorPredicate = Callable[[Entry], bool]


def is_visible_successor(entry: Entry) -> bool:
    """Default rule for a successor that makes a checkpoint show up in rewind.

    Observed behaviour of the consuming application rather than a documented
    contract: the successor must be a live assistant entry with text.
    """
    return (
        entry.get("type") == "assistant"
        and has_text_content_block(entry)
        and not is_dead_assistant(entry)
    )


@dataclass(frozen=True)
class BreakPointSelection:
    """Accepted break points plus death-zone statistics for reporting."""

    break_points: list[int] = field(default_factory=list)
    death_index: int = 0
    dead_excluded: int = 0
    chain_length: int = 0

    @property
    def death_swallows_chain(self) -> bool:
        return self.dead_excluded > 0 and self.death_index <= 1


class BreakPointSelector:
    """Single-pass break point scan over one chain."""

    def __init__(
        self,
        chain: Sequence[ChainEntry],
        start_file_index: int = 0,
        interval: int = 1,
        is_visible: SuccessorPredicate | None = None,
    ) -> None:
        """
        Args:
            chain: Chain entries, oldest first
            start_file_index: Entries before this file index are ineligible
            interval: Assistant entries between interval breaks (>= 1)
            is_visible: Successor predicate (default is_visible_successor)
        """
        if interval < 1:
            raise ValueError(f"interval must be >= 1, got {interval}")
        self.chain = chain
        self.start_file_index = start_file_index
        self.interval = interval
        self.is_visible = is_visible or is_visible_successor
        self.death_index = find_death_index(chain)

    def _eligible(self, i: int) -> bool:
        return self.chain[i].file_index >= self.start_file_index

    def is_valid_rewind_point(self, i: int) -> bool:
        """Return True if a checkpoint after chain[i] would be usable."""
        if i < 0 or i + 1 >= self.death_index or i + 1 >= len(self.chain):
            return False
        if not (self._eligible(i) and self._eligible(i + 1)):
            return False
        successor = self.chain[i + 1].entry
        # Death is re-checked here even though death_index already excludes it
        if is_dead_assistant(successor):
            return False
        return self.is_visible(successor)

    def find_nearest_valid(self, start: int) -> int:
        """Return the first valid rewind point at or after start, or -1."""
        for j in range(max(start, 0), len(self.chain) - 1):
            if self.is_valid_rewind_point(j):
                return j
        return -1

    def _gap_ms(self, i: int) -> float | None:
        before = parse_timestamp(self.chain[i - 1].entry.get("timestamp"))
        after = parse_timestamp(self.chain[i].entry.get("timestamp"))
        if before is None or after is None:
            return None
        return (after - before).total_seconds() * 1000

    def select(self) -> BreakPointSelection:
        """Scan the chain once and return the accepted break points."""
        accepted: list[int] = []
        assistant_count = 0
        last_break = -1

        def accept(candidate: int, reason: str) -> bool:
            nonlocal assistant_count, last_break
            pos = self.find_nearest_valid(candidate)
            if pos < 0:
                logger.debug(f"{reason} candidate {candidate}: no valid point ahead")
                return False
            if last_break >= 0 and pos <= last_break + 1:
                logger.debug(f"{reason} candidate {candidate} -> {pos}: too close to {last_break}")
                return False
            logger.debug(f"{reason} candidate {candidate} -> accepted at {pos}")
            accepted.append(pos)
            assistant_count = 0
            last_break = pos
            return True

        for i, node in enumerate(self.chain):
            if not self._eligible(i):
                continue
            entry = node.entry
            entry_type = entry.get("type")

            if entry_type == "assistant":
                assistant_count += 1

            if entry_type == "assistant" and assistant_count >= self.interval and i > 0:
                accept(i, "interval")

            if entry_type == "system" and entry.get("subtype") == "turn_duration":
                if last_break < 0 or i > last_break + 1:
                    accept(i, "turn_duration")

            # The gap lies between chain[i-1] and chain[i]; the checkpoint goes in it
            if i > 0 and self._eligible(i - 1):
                gap = self._gap_ms(i)
                if gap is not None and gap > TIME_GAP_MS and (last_break < 0 or i - 1 > last_break + 1):
                    accept(i - 1, "time_gap")

        death_index = self.death_index
        return BreakPointSelection(
            break_points=sorted(set(accepted)),
            death_index=death_index,
            dead_excluded=len(self.chain) - death_index,
            chain_length=len(self.chain),
        )


def find_chain_break_points(
    chain: Sequence[ChainEntry],
    start_file_index: int = 0,
    interval: int = 1,
    is_visible: SuccessorPredicate | None = None,
) -> BreakPointSelection:
    """Select break points on a chain.

    Args:
        chain: Chain entries, oldest first
        start_file_index: First file index eligible (after the last compact boundary)
        interval: Assistant entries between interval breaks
        is_visible: Optional successor predicate overriding is_visible_successor

    Returns:
        BreakPointSelection with sorted, de-duplicated chain indices
    """
    return BreakPointSelector(chain, start_file_index, interval, is_visible).select()
