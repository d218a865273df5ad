"""Referential integrity checks for session lines."""

import logging
from dataclasses import dataclass, field

from tav.transcript import ParsedLine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validate(); one error per violation."""

    valid: bool
    errors: list[str] = field(default_factory=list)


def validate(lines: list[ParsedLine]) -> ValidationResult:
    """Check that uuids are unique and every parentUuid resolves.

    The first line is exempt from the parent check. Read-only: nothing is
    corrected. Line numbers in messages are 1-based.
    """
    errors: list[str] = []
    uuids: set[str] = set()

    for i, line in enumerate(lines):
        uuid = line.uuid
        if uuid is None:
            continue
        if uuid in uuids:
            errors.append(f"Duplicate UUID at line {i + 1}: {uuid}")
        uuids.add(uuid)

    for i, line in enumerate(lines[1:], start=1):
        parent = line.parent_uuid
        if parent is None:
            continue
        if parent not in uuids:
            errors.append(f"Broken parent reference at line {i + 1}: {parent} not found")

    if errors:
        logger.debug(f"Validation found {len(errors)} problems")
    return ValidationResult(valid=not errors, errors=errors)
