"""Exceptions raised while locating session files.

Exception Hierarchy:
    SessionResolutionError (base)
    ├── SessionNotFoundError (nothing matches)
    └── AmbiguousSessionError (prefix matches multiple sessions)

The repair pipeline itself never raises; it reports through RepairResult.
"""


class SessionResolutionError(Exception):
    """Base exception for session lookup failures."""


class SessionNotFoundError(SessionResolutionError):
    """Raised when a path or prefix does not match any session file."""

    def __init__(self, target: str) -> None:
        self.target = target
        super().__init__(f"No session found matching: {target}")


class AmbiguousSessionError(SessionResolutionError):
    """Raised when a session ID prefix matches multiple sessions."""

    def __init__(self, prefix: str, matches: list[str]) -> None:
        self.prefix = prefix
        self.matches = matches
        matches_str = "\n  ".join(matches[:10])
        if len(matches) > 10:
            matches_str += f"\n  ... and {len(matches) - 10} more"
        super().__init__(
            f"Session ID prefix '{prefix}' is ambiguous. Matches {len(matches)} sessions:\n  {matches_str}\n\n"
            f"Provide a longer prefix or use the full path."
        )
