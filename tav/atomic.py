"""Atomic file write utilities for tav.

Provides write operations that never leave a half-written session file,
backup, or config behind. Uses the temp file + rename pattern which is
atomic on POSIX systems.

All functions return Result types for explicit error handling.

Permissions:
- Existing files keep their permission bits unless a mode is given
- New files are created with 0o600 by default
- Temp files are cleaned up on failure
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from tav.errors import Result, TavError, err, ok

logger = logging.getLogger(__name__)

DEFAULT_MODE = 0o600


def _resolve_mode(path: Path, mode: int | None) -> int:
    """Use the explicit mode, else the target's current bits, else the default."""
    if mode is not None:
        return mode
    try:
        return path.stat().st_mode & 0o777
    except OSError:
        return DEFAULT_MODE


def atomic_write_bytes(
    path: Path,
    data: bytes,
    mode: int | None = None,
) -> Result[Path, TavError]:
    """Atomically write raw bytes to a file.

    Uses temp file + rename pattern for crash safety.
    Creates parent directories if they don't exist.

    Args:
        path: Target file path
        data: Bytes to write
        mode: File permissions (default: keep existing, else 0o600)

    Returns:
        Ok(path) on success, Err(TavError) on failure
    """
    path = Path(path)
    temp_path: str | None = None
    final_mode = _resolve_mode(path, mode)

    try:
        path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)

        # Temp file in same directory (required for atomic rename)
        fd, temp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.stem}_",
            suffix=f"{path.suffix}.tmp",
        )

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)

            os.chmod(temp_path, final_mode)
            os.replace(temp_path, path)

            logger.debug(f"Atomic write complete: {path} ({len(data)} bytes)")
            return ok(path)

        except Exception:
            _cleanup_temp(temp_path)
            raise

    except PermissionError as e:
        logger.error(f"Permission denied writing {path}: {e}")
        return err(
            TavError(
                code="ATOMIC_PERMISSION_DENIED",
                message=f"Permission denied writing to {path}",
                context={"path": str(path)},
            )
        )

    except OSError as e:
        logger.error(f"OS error writing {path}: {e}")
        return err(
            TavError(
                code="ATOMIC_WRITE_FAILED",
                message=f"Failed to write {path}: {e}",
                context={"path": str(path), "error": str(e)},
            )
        )


def atomic_write_text(
    path: Path,
    content: str,
    mode: int | None = None,
) -> Result[Path, TavError]:
    """Atomically write UTF-8 text content to a file.

    Example:
        result = atomic_write_text(Path("/path/to/session.jsonl"), content)
        if result.is_ok():
            print(f"Written to {result.unwrap()}")
    """
    return atomic_write_bytes(path, content.encode("utf-8"), mode)


def atomic_copy(
    source: Path,
    destination: Path,
    mode: int | None = None,
) -> Result[Path, TavError]:
    """Copy a file byte for byte, atomically replacing the destination.

    The destination keeps its own permission bits when it already exists;
    a new destination inherits the source's bits.

    Args:
        source: File to copy
        destination: Where the copy goes
        mode: Explicit permissions for the destination

    Returns:
        Ok(destination) on success, Err(TavError) if either side fails
    """
    source = Path(source)
    destination = Path(destination)

    try:
        data = source.read_bytes()
    except OSError as e:
        logger.error(f"Cannot read {source}: {e}")
        return err(
            TavError(
                code="COPY_READ_FAILED",
                message=f"Cannot read {source}: {e}",
                context={"source": str(source), "destination": str(destination)},
            )
        )

    if mode is None and not destination.exists():
        mode = _resolve_mode(source, None)

    return atomic_write_bytes(destination, data, mode)


def atomic_write_yaml(
    path: Path,
    data: Any,
    mode: int = DEFAULT_MODE,
    default_flow_style: bool = False,
    sort_keys: bool = False,
    allow_unicode: bool = True,
) -> Result[Path, TavError]:
    """Atomically write YAML data to a file.

    Uses yaml.safe_dump for security (no arbitrary Python objects).

    Args:
        path: Target file path
        data: Data to serialize as YAML
        mode: File permissions (default 0o600)
        default_flow_style: Use flow style (default False)
        sort_keys: Sort dictionary keys (default False)
        allow_unicode: Allow unicode characters (default True)

    Returns:
        Ok(path) on success, Err(TavError) on failure
    """
    try:
        content = yaml.safe_dump(
            data,
            default_flow_style=default_flow_style,
            sort_keys=sort_keys,
            allow_unicode=allow_unicode,
        )
    except yaml.YAMLError as e:
        logger.error(f"YAML serialization failed: {e}")
        return err(
            TavError(
                code="YAML_SERIALIZATION_FAILED",
                message=f"Failed to serialize data to YAML: {e}",
                context={"error": str(e)},
            )
        )

    return atomic_write_text(path, content, mode)


def _cleanup_temp(temp_path: str | None) -> None:
    """Clean up temporary file, ignoring errors.

    Args:
        temp_path: Path to temp file, or None if no cleanup needed
    """
    if temp_path is None:
        return

    try:
        os.unlink(temp_path)
        logger.debug(f"Cleaned up temp file: {temp_path}")
    except OSError:
        # Temp file may already be gone
        pass
