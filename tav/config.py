"""Configuration management for tav.

Storage Structure
-----------------
~/.claude/tav/
└── config.yaml               # Repair defaults (marker, interval, verify)

~/.claude/projects/<hash>/    # Claude Code session transcripts (read/repaired)
~/.claude/transcripts/        # Older flat transcript location

Precedence
----------
CLI options → config.yaml → built-in defaults. Unknown keys in the file are
ignored and values of the wrong type fall back to the default with a
warning, so a hand-edited config can never stop a repair from running.
"""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from tav.atomic import atomic_write_yaml
from tav.errors import Result, TavError

logger = logging.getLogger(__name__)

# Standard paths
CLAUDE_DIR = Path.home() / ".claude"
TAV_DIR = CLAUDE_DIR / "tav"
CONFIG_PATH = TAV_DIR / "config.yaml"

DEFAULT_MARKER = "·"  # middle dot


@dataclass
class TavConfig:
    """User-configurable repair defaults."""

    # Checkpoint content written into synthetic entries
    marker: str = DEFAULT_MARKER

    # Insert a checkpoint every N assistant entries
    interval: int = 1

    # Validate chain integrity before writing
    verify: bool = True

    # Default row count for `tav list`
    recent_limit: int = 10

    @classmethod
    def load(cls, path: Path | None = None) -> "TavConfig":
        """Load config from a YAML file.

        Args:
            path: Config file path (default ~/.claude/tav/config.yaml)

        Returns:
            TavConfig with values from file, or defaults if not found
        """
        config_path = path or CONFIG_PATH
        if not config_path.exists():
            return cls()

        try:
            with open(config_path, encoding="utf-8") as f:
                overrides = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Config error (using defaults): {config_path}: {e}")
            return cls()

        if not isinstance(overrides, dict):
            logger.warning(f"Config error (using defaults): {config_path} is not a mapping")
            return cls()

        return cls._from_dict(overrides)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "TavConfig":
        """Create config from a dictionary, keeping only well-typed known fields."""
        defaults = cls()
        values = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            # bool is an int subclass; reject it for int fields
            if f.type is int and isinstance(value, bool):
                valid = False
            else:
                valid = isinstance(value, f.type)
            if not valid:
                logger.warning(
                    f"Ignoring config {f.name}={value!r}: expected {f.type.__name__}, "
                    f"using default {getattr(defaults, f.name)!r}"
                )
                continue
            values[f.name] = value

        config = cls(**values)
        if config.interval < 1:
            logger.warning(f"Ignoring config interval={config.interval}: must be >= 1")
            config.interval = defaults.interval
        if not config.marker:
            logger.warning("Ignoring empty config marker")
            config.marker = defaults.marker
        return config

    def save(self, path: Path | None = None) -> Result[Path, TavError]:
        """Save config, writing only non-default values.

        Args:
            path: Config file path (default ~/.claude/tav/config.yaml)

        Returns:
            Ok(path) on success, Err(TavError) on failure
        """
        config_path = path or CONFIG_PATH

        defaults = TavConfig()
        data = {}
        for key, value in self.to_dict().items():
            if getattr(defaults, key) != value:
                data[key] = value

        # Marker that config was explicitly saved
        if not data:
            data = {"_version": 1}

        return atomic_write_yaml(config_path, data)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "marker": self.marker,
            "interval": self.interval,
            "verify": self.verify,
            "recent_limit": self.recent_limit,
        }
