#!/usr/bin/env python3
"""Transport isolation validation script.

Enforces the architectural rule that the dispatch core (core/, types/,
utils/, store/ and queue/) talks to the push gateway only through the
``PushTransport`` protocol. Only transport/, service.py and app/ may use the
HTTP client library or the concrete gateway client.

This script scans for:
- Imports of aiohttp
- Imports of push_dispatch.transport.fcm or FcmTransport
- Hardcoded gateway endpoint URLs

Exit codes:
    0: No violations found (clean)
    1: Violations detected (architectural rule broken)
"""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Final

# ANSI color codes for terminal output
RED: Final[str] = "\033[91m"
GREEN: Final[str] = "\033[92m"
YELLOW: Final[str] = "\033[93m"
RESET: Final[str] = "\033[0m"

PROTECTED_DIRS: Final[tuple[str, ...]] = ("core", "types", "utils", "store", "queue")

HTTP_IMPORT_PATTERN: Final[re.Pattern[str]] = re.compile(r"^\s*(?:import|from)\s+aiohttp\b")
CLIENT_IMPORT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"push_dispatch\.transport\.fcm\b|\bFcmTransport\b|from\s+push_dispatch\.transport\s+import"
)
ENDPOINT_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?:fcm|gcm-http|android)\.googleapis\.com", re.IGNORECASE)


def check_file(file_path: Path) -> list[tuple[int, str]]:
    """Check a single Python file for transport isolation violations.

    Returns:
        List of (line_number, violation_description) tuples
    """
    violations: list[tuple[int, str]] = []

    try:
        lines = file_path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        print(f"{YELLOW}Warning: Could not read {file_path}: {e}{RESET}", file=sys.stderr)
        return violations

    for line_num, line in enumerate(lines, start=1):
        if HTTP_IMPORT_PATTERN.search(line):
            violations.append((line_num, f"HTTP client import: {line.strip()}"))
        if CLIENT_IMPORT_PATTERN.search(line):
            violations.append((line_num, f"Concrete gateway client reference: {line.strip()}"))
        if ENDPOINT_PATTERN.search(line):
            violations.append((line_num, f"Hardcoded gateway endpoint: {line.strip()}"))

    return violations


def scan_directory(base_path: Path, protected_dir: str) -> dict[Path, list[tuple[int, str]]]:
    """Scan a protected directory for violations."""
    dir_path = base_path / protected_dir
    if not dir_path.exists():
        print(f"{YELLOW}Warning: Protected directory {dir_path} does not exist{RESET}", file=sys.stderr)
        return {}

    violations_by_file: dict[Path, list[tuple[int, str]]] = {}
    for py_file in dir_path.rglob("*.py"):
        if "__pycache__" in py_file.parts:
            continue
        file_violations = check_file(py_file)
        if file_violations:
            violations_by_file[py_file] = file_violations
    return violations_by_file


def main() -> int:
    project_root = Path(__file__).parent.parent
    src_path = project_root / "src" / "push_dispatch"

    if not src_path.exists():
        print(f"{RED}Error: Could not find src/push_dispatch directory{RESET}", file=sys.stderr)
        return 1

    print(f"Checking transport isolation in {', '.join(PROTECTED_DIRS)}...")
    print(f"Scanning: {src_path}\n")

    all_violations: dict[Path, list[tuple[int, str]]] = {}
    for protected_dir in PROTECTED_DIRS:
        all_violations.update(scan_directory(src_path, protected_dir))

    if not all_violations:
        print(f"{GREEN}✓ No transport isolation violations found!{RESET}")
        return 0

    total_violations = sum(len(v) for v in all_violations.values())
    print(f"{RED}✗ Found {total_violations} transport isolation violations:{RESET}\n")

    for file_path, violations in sorted(all_violations.items()):
        try:
            rel_path = file_path.relative_to(project_root)
        except ValueError:
            rel_path = file_path
        print(f"{RED}{rel_path}{RESET}")
        for line_num, description in violations:
            print(f"  {line_num}: {description}")
        print()

    print(f"{RED}Transport isolation check failed!{RESET}")
    print("\nUse the PushTransport protocol in the dispatch core; keep gateway clients in transport/.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
