"""tav: Rewind point repair for Claude Code sessions."""

__version__ = "0.4.0"

from tav.repair import RepairOptions, RepairResult, repair

__all__ = [
    "__version__",
    "RepairOptions",
    "RepairResult",
    "repair",
]
