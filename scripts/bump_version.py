#!/usr/bin/env python3
"""Bump version across all tav files.

Usage:
    python scripts/bump_version.py 0.5.0
    python scripts/bump_version.py --check  # Show current versions
"""

import re
import sys
from pathlib import Path

# Root of the repo
ROOT = Path(__file__).parent.parent

# Files that contain version strings
VERSION_FILES = {
    "pyproject.toml": {
        "pattern": r'^version = "[^"]+"',
        "replacement": 'version = "{version}"',
    },
    "tav/__init__.py": {
        "pattern": r'^__version__ = "[^"]+"',
        "replacement": '__version__ = "{version}"',
    },
}


def get_current_versions() -> dict[str, str]:
    """Get current version from each file."""
    versions = {}

    for file, config in VERSION_FILES.items():
        path = ROOT / file
        if not path.exists():
            versions[file] = "NOT FOUND"
            continue

        match = re.search(config["pattern"], path.read_text(), re.MULTILINE)
        if match:
            ver_match = re.search(r"[0-9]+\.[0-9]+\.[0-9]+", match.group())
            versions[file] = ver_match.group() if ver_match else "PARSE ERROR"
        else:
            versions[file] = "NOT FOUND"

    return versions


def bump_version(new_version: str) -> list[str]:
    """Update version in all files. Returns list of updated files."""
    updated = []

    for file, config in VERSION_FILES.items():
        path = ROOT / file
        if not path.exists():
            print(f"  SKIP {file} (not found)")
            continue

        content = path.read_text()
        replacement = config["replacement"].format(version=new_version)
        new_content = re.sub(config["pattern"], replacement, content, count=1, flags=re.MULTILINE)

        if new_content != content:
            path.write_text(new_content)
            updated.append(file)
            print(f"  OK   {file} -> {new_version}")
        else:
            print(f"  SAME {file}")

    return updated


def main():
    if len(sys.argv) < 2:
        print("Usage: python scripts/bump_version.py <version>")
        print("       python scripts/bump_version.py --check")
        sys.exit(1)

    arg = sys.argv[1]

    if arg == "--check":
        print("Current versions:")
        print("-" * 50)
        versions = get_current_versions()
        for file, ver in versions.items():
            print(f"  {file}: {ver}")

        unique = set(versions.values()) - {"NOT FOUND", "PARSE ERROR"}
        if len(unique) == 1:
            print(f"\n✓ All versions in sync: {unique.pop()}")
        else:
            print(f"\n✗ Versions out of sync: {unique}")
            sys.exit(1)
        return

    if not re.match(r"^[0-9]+\.[0-9]+\.[0-9]+$", arg):
        print(f"Invalid version format: {arg}")
        print("Expected: X.Y.Z (e.g., 0.5.0)")
        sys.exit(1)

    print(f"Bumping to version {arg}...")
    print("-" * 50)
    updated = bump_version(arg)
    print("-" * 50)
    print(f"Updated {len(updated)} file(s)")

    if updated:
        print("\nNext steps:")
        print(f"  git add {' '.join(updated)}")
        print(f"  git commit -m 'chore: bump version to {arg}'")


if __name__ == "__main__":
    main()
