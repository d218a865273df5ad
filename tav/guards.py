"""Stop-reason guards used by death detection.

Pure predicates over a raw record (an entry, or the nested message of one).
Field names have drifted across Claude Code releases, so each check looks at
every known spelling.
"""

from typing import Any

CONTEXT_LIMIT_PATTERNS = (
    "context_limit",
    "context_window",
    "context_exceeded",
    "context_full",
    "max_context",
    "token_limit",
    "max_tokens",
    "conversation_too_long",
    "input_too_long",
)

STOP_REASON_FIELDS = ("stop_reason", "stopReason", "reason")
END_TURN_REASON_FIELDS = ("end_turn_reason", "endTurnReason")


def _first_present(record: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _matches_context_limit(value: Any) -> bool:
    if not value:
        return False
    normalized = str(value).lower()
    return any(pattern in normalized for pattern in CONTEXT_LIMIT_PATTERNS)


def is_context_limit_stop(record: dict[str, Any]) -> bool:
    """Detect a stop caused by the context/token limit being reached.

    Checks stop_reason and end_turn_reason (snake_case and camelCase) for a
    case-insensitive substring match against CONTEXT_LIMIT_PATTERNS.
    """
    if not isinstance(record, dict):
        return False

    if _matches_context_limit(_first_present(record, STOP_REASON_FIELDS)):
        return True

    return _matches_context_limit(_first_present(record, END_TURN_REASON_FIELDS))
