#!/usr/bin/env python3
"""
Event scoping lint check.

Scans the backend package for two kinds of tenant-isolation mistakes:
1. Queries on a child table (guests, menu items, tables, ushers, vendors)
   that never filter on event_id
2. Route handlers that never run the ownership guard (no planner, event,
   resource or session dependency)

USAGE:
    python scripts/check_event_scoping.py

    # Or with verbose output
    python scripts/check_event_scoping.py -v

    # Fail on HIGH findings (CI)
    python scripts/check_event_scoping.py --strict

EXIT CODES:
    0 - No HIGH findings (or not --strict)
    1 - HIGH findings with --strict

Suppress a deliberate exception with "# noqa: event-scoping" on the line.
"""

import argparse
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List

# ────────────────────────────────────────────────────────────────
# Configuration
# ────────────────────────────────────────────────────────────────

SCAN_ROOT = Path(__file__).parent.parent / "Backend" / "eventflow"

EXCLUDE_PATTERNS = [
    "__pycache__",
    "tenancy/",  # Home of the scoped query helpers themselves
    "test_",
]

CHILD_MODELS = ["Guest", "MenuItem", "Table", "Usher", "Vendor"]

CHILD_QUERY = re.compile(rf"select\((?:{'|'.join(CHILD_MODELS)})\)")

# Any of these within the statement counts as scoped
SCOPED_MARKERS = re.compile(r"\.event_id\s*==|event_id\s*=|scoped_select\(|Event\.planner_id\s*==")

ROUTE_DECORATOR = re.compile(r"^@router\.(get|post|put|patch|delete)\(")

GUARD_DEPENDENCIES = re.compile(
    r"Depends\((get_planner_context|get_event_context|get_current_session|get_optional_session|require_\w+)\)"
)

# Routes that are intentionally open
PUBLIC_ROUTES = {"routes_auth.py"}

IGNORE_PATTERN = re.compile(r"noqa:\s*event-scoping")

# Lines after a match to treat as the same statement
CONTEXT_LINES = 8


# ────────────────────────────────────────────────────────────────
# Data Classes
# ────────────────────────────────────────────────────────────────

@dataclass
class Finding:
    """A single scoping issue."""

    file: Path
    line_num: int
    line_text: str
    severity: str
    description: str

    def __str__(self):
        return f"{self.severity}: {self.file}:{self.line_num} - {self.description}\n  > {self.line_text.strip()}"


# ────────────────────────────────────────────────────────────────
# Scanning Logic
# ────────────────────────────────────────────────────────────────

def should_exclude(path: Path) -> bool:
    path_str = path.as_posix()
    return any(excl in path_str for excl in EXCLUDE_PATTERNS)


def _handler_signature(lines: List[str], start: int) -> str:
    """Decorator line through the end of the def signature."""
    collected = []
    for line in lines[start:]:
        collected.append(line)
        if line.rstrip().endswith("):") or line.rstrip().endswith(":"):
            if line.lstrip().startswith(("async def", "def", ")")):
                break
    return "\n".join(collected)


def scan_file(file_path: Path) -> List[Finding]:
    """Scan a single file for scoping issues."""
    findings = []

    try:
        lines = file_path.read_text(encoding="utf-8").split("\n")
    except OSError as e:
        print(f"Warning: Could not read {file_path}: {e}", file=sys.stderr)
        return []

    for index, line in enumerate(lines):
        if IGNORE_PATTERN.search(line):
            continue
        line_num = index + 1

        if CHILD_QUERY.search(line):
            window = "\n".join(lines[index:index + CONTEXT_LINES])
            if not SCOPED_MARKERS.search(window):
                findings.append(Finding(
                    file=file_path,
                    line_num=line_num,
                    line_text=line,
                    severity="HIGH",
                    description="Child-resource query without event_id filter - potential cross-tenant leak",
                ))

        if ROUTE_DECORATOR.match(line) and file_path.name not in PUBLIC_ROUTES:
            if '"/health"' in line:
                continue
            signature = _handler_signature(lines, index)
            if not GUARD_DEPENDENCIES.search(signature):
                findings.append(Finding(
                    file=file_path,
                    line_num=line_num,
                    line_text=line,
                    severity="HIGH",
                    description="Route handler without a session or ownership dependency",
                ))

    return findings


def scan_directory(root: Path) -> List[Finding]:
    all_findings = []
    for path in sorted(root.rglob("*.py")):
        if should_exclude(path):
            continue
        all_findings.extend(scan_file(path))
    return all_findings


# ────────────────────────────────────────────────────────────────
# Reporting
# ────────────────────────────────────────────────────────────────

def print_report(findings: List[Finding], verbose: bool = False):
    if not findings:
        print("✅ No event scoping issues found!")
        return

    by_severity = {}
    for f in findings:
        by_severity.setdefault(f.severity, []).append(f)

    print("\n" + "=" * 60)
    print("EVENT SCOPING CHECK REPORT")
    print("=" * 60)

    print("\nSUMMARY:")
    for sev, items in by_severity.items():
        print(f"  🟠 {sev}: {len(items)}")
    print(f"\nTOTAL: {len(findings)} issues")

    if verbose:
        print("\n" + "-" * 60)
        print("DETAILS:")
        print("-" * 60)
        for f in findings:
            print(f"  {f.file}:{f.line_num}")
            print(f"    {f.description}")
            print(f"    > {f.line_text.strip()[:80]}")
    else:
        print("\nRun with -v for detailed findings.")


# ────────────────────────────────────────────────────────────────
# Main
# ────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Check the backend for event scoping issues")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show detailed findings")
    parser.add_argument("--strict", action="store_true", help="Exit with code 1 on HIGH findings (for CI)")
    parser.add_argument("--path", type=Path, default=SCAN_ROOT, help=f"Path to scan (default: {SCAN_ROOT})")
    args = parser.parse_args()

    if not args.path.exists():
        print(f"Error: Path {args.path} does not exist", file=sys.stderr)
        sys.exit(1)

    print(f"Scanning {args.path}...")
    findings = scan_directory(args.path)
    print_report(findings, verbose=args.verbose)

    if args.strict and any(f.severity == "HIGH" for f in findings):
        print(f"\n❌ {len(findings)} issues found. Failing.")
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
