"""Death detection for assistant entries.

A session "dies" when Claude Code can no longer continue it, typically after
the context window is exhausted. From that point on every assistant entry is
an error stub, and a checkpoint placed there would rewind into a dead end.

Three independent signals identify a dead assistant entry. Any one is
enough, so the detector keeps working if a future transcript format drops
one of them:

- sentinel: model is ``<synthetic>`` and the usage token total is zero
- prompt too long: the text content contains "Prompt is too long"
- context-limit stop: a stop/end-turn reason names context exhaustion
"""

from typing import Any

from tav.guards import is_context_limit_stop
from tav.transcript import Entry, get_content, get_message, iter_text_blocks

SENTINEL_MODEL = "<synthetic>"
PROMPT_TOO_LONG = "Prompt is too long"

USAGE_FIELDS = (
    "input_tokens",
    "output_tokens",
    "cache_creation_input_tokens",
    "cache_read_input_tokens",
)


def _usage_total(usage: Any) -> int:
    if not isinstance(usage, dict):
        return 0
    total = 0
    for key in USAGE_FIELDS:
        value = usage.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            total += value
    return total


def has_sentinel_model(entry: Entry) -> bool:
    """Sentinel model with zero token usage."""
    message = get_message(entry)
    model = entry.get("model") or message.get("model")
    if model != SENTINEL_MODEL:
        return False
    return _usage_total(message.get("usage")) == 0


def has_prompt_too_long(entry: Entry) -> bool:
    """Content mentions the prompt-too-long failure."""
    return any(PROMPT_TOO_LONG in text for text in iter_text_blocks(get_content(entry)))


def has_context_limit_stop(entry: Entry) -> bool:
    """Stop reason on the entry or its message names context exhaustion."""
    return is_context_limit_stop(entry) or is_context_limit_stop(get_message(entry))


DEATH_SIGNALS = (has_sentinel_model, has_prompt_too_long, has_context_limit_stop)


def is_dead_assistant(entry: Entry) -> bool:
    """Return True if the entry is an assistant entry in a terminal failure state."""
    if entry.get("type") != "assistant":
        return False
    return any(signal(entry) for signal in DEATH_SIGNALS)


def has_text_content_block(entry: Entry) -> bool:
    """Return True if the message has non-blank text.

    Tool-use-only or thinking-only content has no text block.
    """
    content = get_content(entry)
    if isinstance(content, str):
        return bool(content.strip())
    if isinstance(content, list):
        return any(text.strip() for text in iter_text_blocks(content))
    return False


def find_death_index(chain) -> int:
    """Return the chain index of the first dead assistant entry.

    Death does not recover: every later position is treated as dead too.

    Args:
        chain: Sequence of ChainEntry, oldest first

    Returns:
        Index of the first dead entry, or len(chain) if none
    """
    for i, node in enumerate(chain):
        if is_dead_assistant(node.entry):
            return i
    return len(chain)
