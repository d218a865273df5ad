"""Session repair pipeline.

Inserts synthetic checkpoints into a Claude Code session file so the rewind
UI has more places to jump back to:

    restore backup → parse → metadata → chain → break points → backup
    → insert → validate → write

Backup-first: the first real repair copies the file to ``<file>.tav-backup``.
Every later run starts by copying that backup over the target, so a run
always works from the pristine original and never stacks checkpoints on
checkpoints. The backup is never overwritten.

Nothing here raises for bad input or I/O failure. Errors and policy
outcomes are collected into a RepairResult; a non-empty ``errors`` list
means the file was not written by this run.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from tav.atomic import atomic_copy, atomic_write_text
from tav.breakpoints import SuccessorPredicate, find_chain_break_points
from tav.chain import build_chain, find_last_compact_boundary
from tav.config import DEFAULT_MARKER, TavConfig
from tav.errors import Result, TavError, err, format_error, ok
from tav.insertion import insert_chain_bookmarks
from tav.transcript import (
    ParsedLine,
    count_marker_entries,
    extract_metadata,
    read_session,
    render_jsonl,
)
from tav.validate import ValidationResult, validate

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".tav-backup"

UNVERIFIED_NOTE = (
    "NOTE: Claude Code loading repaired JSONL as rewind points is UNVERIFIED. "
    "Test on a non-critical session first."
)


@dataclass
class RepairOptions:
    """Knobs for a single repair run."""

    interval: int = 1  # Insert every N assistant entries
    dry_run: bool = False  # Report only, touch nothing
    verify: bool = True  # Validate before writing
    marker: str = DEFAULT_MARKER
    is_visible: SuccessorPredicate | None = None  # Successor acceptance rule override

    @classmethod
    def from_config(cls, config: TavConfig, **overrides) -> "RepairOptions":
        """Build options from config, letting non-None overrides win."""
        values = {
            "interval": config.interval,
            "verify": config.verify,
            "marker": config.marker,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass
class RepairResult:
    """Structured outcome of repair()."""

    inserted: int = 0
    backup_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    death_index: int | None = None
    dead_excluded: int = 0
    break_points: list[int] = field(default_factory=list)
    restored_from_backup: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class SessionReport:
    """Read-only diagnosis of a session file."""

    path: Path
    total_lines: int
    malformed_lines: int
    chain_length: int
    death_index: int
    dead_excluded: int
    compact_boundary: int
    break_points: list[int]
    validation: ValidationResult
    has_backup: bool
    existing_markers: int


def backup_path_for(path: Path) -> Path:
    """Return the backup location for a session file."""
    path = Path(path)
    return path.with_name(path.name + BACKUP_SUFFIX)


def create_backup(path: Path) -> Result[Path, TavError]:
    """Copy the session file to its backup unless a backup already exists."""
    backup = backup_path_for(path)
    if backup.exists():
        logger.debug(f"Backup already present, keeping it: {backup}")
        return ok(backup)

    result = atomic_copy(path, backup)
    if result.is_ok():
        logger.info(f"Created backup: {backup}")
    return result


def restore_from_backup(path: Path) -> Result[Path, TavError]:
    """Copy the backup over the session file. The backup is kept."""
    backup = backup_path_for(path)
    if not backup.exists():
        return err(
            TavError(
                code="BACKUP_NOT_FOUND",
                message=f"No backup found: {backup}",
                context={"path": str(path), "backup": str(backup)},
            )
        )

    result = atomic_copy(backup, path)
    if result.is_ok():
        logger.info(f"Restored {path} from {backup}")
    return result


def _read_lines(path: Path) -> Result[list[ParsedLine], TavError]:
    try:
        lines = read_session(path)
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Cannot read {path}: {e}")
        return err(
            TavError(
                code="READ_FAILED",
                message=f"Cannot read file: {path}",
                context={"path": str(path), "error": str(e)},
            )
        )
    return ok(lines)


def _start_file_index(lines: list[ParsedLine]) -> int:
    last_compact = find_last_compact_boundary(lines)
    return last_compact + 1 if last_compact >= 0 else 0


def repair(path: Path, options: RepairOptions | None = None) -> RepairResult:
    """Insert checkpoints into a session file.

    Args:
        path: Session JSONL file
        options: Repair options (defaults to RepairOptions())

    Returns:
        RepairResult; ``errors`` non-empty means nothing was written
    """
    path = Path(path)
    options = options or RepairOptions()
    result = RepairResult()

    if options.interval < 1:
        result.errors.append(f"Invalid interval: {options.interval} (must be >= 1)")
        return result

    # Step 1: always start from the pristine original
    backup = backup_path_for(path)
    source = path
    if backup.exists():
        if options.dry_run:
            source = backup
            result.warnings.append(f"Backup present, analysing pristine original: {backup}")
        else:
            restored = restore_from_backup(path)
            if restored.is_err():
                result.errors.append(f"Cannot restore from backup: {format_error(restored.unwrap_err())}")
                return result
            result.restored_from_backup = True
            result.backup_path = backup

    # Step 2: read and parse
    read = _read_lines(source)
    if read.is_err():
        result.errors.append(read.unwrap_err().message)
        return result
    lines = read.unwrap()
    if not lines:
        result.errors.append("File is empty")
        return result

    malformed = sum(1 for line in lines if line.entry is None)
    if malformed:
        result.warnings.append(f"{malformed} malformed line(s) kept verbatim")

    # Step 3: earlier checkpoints (heuristic)
    existing = count_marker_entries(lines, options.marker)
    if existing:
        result.warnings.append(
            f"File already contains {existing} checkpoint marker(s) '{options.marker}' "
            f"(repaired before without a backup?)"
        )

    # Step 4: provenance for synthetic entries
    metadata = extract_metadata(lines)
    if metadata is None:
        result.errors.append("No user entry found - cannot extract session metadata")
        return result

    # Step 5: the path the rewind UI walks
    chain = build_chain(lines)
    if not chain:
        result.errors.append("Cannot build parentUuid chain - no entries with uuid")
        return result

    # Step 6: never touch segments behind a compaction boundary
    start_file_index = _start_file_index(lines)

    # Step 7: break points
    selection = find_chain_break_points(chain, start_file_index, options.interval, options.is_visible)
    result.death_index = selection.death_index
    result.dead_excluded = selection.dead_excluded
    logger.debug(
        f"chain={selection.chain_length} start_file_index={start_file_index} "
        f"death_index={selection.death_index} break_points={selection.break_points}"
    )

    if selection.death_swallows_chain:
        result.warnings.append(
            f"Death zone starts at chain[{selection.death_index}] - "
            f"no live conversation left to checkpoint"
        )
        return result

    if not selection.break_points:
        result.warnings.append("No break points found on chain - file may be too short or already well-segmented")
        return result

    result.break_points = selection.break_points

    # Step 8: dry run
    if options.dry_run:
        result.inserted = len(selection.break_points)
        result.warnings.append(f"DRY RUN: Would insert {result.inserted} rewind points")
        for bp in selection.break_points:
            anchor = chain[bp]
            ts = anchor.entry.get("timestamp") or "unknown"
            result.warnings.append(f"  Break at chain[{bp}] file line {anchor.file_index + 1} ({ts})")
        if selection.dead_excluded:
            result.warnings.append(_death_zone_note(selection.death_index, selection.dead_excluded))
        return result

    # Step 9: backup, insert, validate, write
    backed_up = create_backup(path)
    if backed_up.is_err():
        result.errors.append(f"Cannot create backup: {format_error(backed_up.unwrap_err())}")
        return result
    result.backup_path = backed_up.unwrap()

    insertion = insert_chain_bookmarks(lines, chain, selection.break_points, metadata, options.marker)

    if options.verify:
        validation = validate(insertion.lines)
        if not validation.valid:
            result.errors.extend(validation.errors)
            result.warnings.append("Validation failed - repaired file NOT written. Backup preserved.")
            return result

    written = atomic_write_text(path, render_jsonl(insertion.lines))
    if written.is_err():
        result.errors.append(f"Cannot write repaired file: {format_error(written.unwrap_err())}")
        return result

    result.inserted = insertion.inserted
    logger.info(f"Inserted {insertion.inserted} checkpoints into {path}")

    if selection.dead_excluded:
        result.warnings.append(_death_zone_note(selection.death_index, selection.dead_excluded))
    result.warnings.append(f"{UNVERIFIED_NOTE} Backup at: {result.backup_path}")
    return result


def _death_zone_note(death_index: int, dead_excluded: int) -> str:
    return f"Death zone: chain[{death_index}:] excluded ({dead_excluded} dead entries)"


def inspect_session(path: Path, interval: int = 1, marker: str = DEFAULT_MARKER) -> Result[SessionReport, TavError]:
    """Diagnose a session file without modifying anything.

    Analyses the file as it is on disk (not the backup), so a repaired file
    reports its own chain and validation state.
    """
    path = Path(path)
    read = _read_lines(path)
    if read.is_err():
        return read
    lines = read.unwrap()

    chain = build_chain(lines)
    selection = find_chain_break_points(chain, _start_file_index(lines), max(interval, 1))

    return ok(
        SessionReport(
            path=path,
            total_lines=len(lines),
            malformed_lines=sum(1 for line in lines if line.entry is None),
            chain_length=len(chain),
            death_index=selection.death_index,
            dead_excluded=selection.dead_excluded,
            compact_boundary=find_last_compact_boundary(lines),
            break_points=selection.break_points,
            validation=validate(lines),
            has_backup=backup_path_for(path).exists(),
            existing_markers=count_marker_entries(lines, marker),
        )
    )
