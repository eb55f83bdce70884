"""
Store CLI tool for groupstore.

This tool manages schema versions and inspects the shared store:
- schema snapshot: Export the version registry to a lockfile
- schema check: Verify shipped versions and the migration plan
- schema plan: Print the migration chain
- info: Show the version tag of the shared file
- migrate: Open the store as a writer (runs pending migrations)
- recent: List the newest items through a read-only handle

Usage:
    groupstore schema snapshot -o schema.lock.json
    groupstore schema check --baseline schema.lock.json
    groupstore recent --limit 5

Invariants:
    - Breaking changes and plan problems cause exit code 1
    - Store errors print their code and cause exit code 1
    - Bad configuration or unreadable files print a message and cause exit code 1
    - Lockfiles are deterministic (sorted JSON)
    - Only `migrate` opens the store for writing

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, List, Optional, Sequence

from ..access.context import AppContext
from ..config import AppConfig
from ..errors import GroupStoreError
from ..migrate.plan import MigrationPlan
from ..schema import VersionRegistry, check_shipped_versions
from ..schema.versions import build_plan, build_registry

logger = logging.getLogger(__name__)

LOCKFILE_FORMAT = 1


class StoreCLI:
    """Command implementations, independent of argument parsing.

    Example:
        >>> cli = StoreCLI()
        >>> print(cli.snapshot(build_registry()))
        >>> ok, issues = cli.check(build_registry(), build_plan(), "schema.lock.json")
    """

    def snapshot(self, registry: VersionRegistry) -> str:
        """Export the registry as a lockfile."""
        output = {
            "format": LOCKFILE_FORMAT,
            "fingerprint": registry.fingerprint or "unfrozen",
            "registry": registry.to_dict(),
        }
        return json.dumps(output, indent=2, sort_keys=True)

    def check(
        self,
        registry: VersionRegistry,
        plan: MigrationPlan,
        baseline_path: str,
    ) -> tuple[bool, list[str]]:
        """Check the running registry and plan against a lockfile.

        Returns:
            Tuple of (is_ok, list_of_issues)
        """
        with open(baseline_path) as f:
            baseline_data = json.load(f)

        # Accept both the wrapped lockfile and a bare registry dump
        registry_data = baseline_data.get("registry", baseline_data)
        baseline = VersionRegistry.from_dict(registry_data)

        issues = [str(c) for c in check_shipped_versions(baseline, registry) if c.is_breaking]
        issues.extend(plan.validate(registry))
        return len(issues) == 0, issues

    def plan_lines(self, registry: VersionRegistry, plan: MigrationPlan) -> List[str]:
        lines = []
        for step in plan:
            transforms = ", ".join(sorted(step.transforms)) or "-"
            lines.append(f"{step.source} -> {step.target}  {step.kind.value:<9}  {transforms}")
        lines.append(f"current: {registry.current_version().version}")
        return lines

    def info(self, context: AppContext) -> dict[str, Any]:
        """Describe the shared file without opening it for writing."""
        storage = context.config.storage
        directory = context.resolver.locate(context.locator, storage.group_id)
        found = context.resolver.probe(directory, storage.db_file)
        target = context.target_version
        if found is None:
            status = "absent"
        elif found == target:
            status = "current"
        elif found < target:
            status = "behind"
        else:
            status = "ahead"
        return {
            "path": str(directory / storage.db_file),
            "version": None if found is None else str(found),
            "target": str(target),
            "status": status,
        }

    async def migrate(self, context: AppContext) -> str:
        writer = context.writer()
        try:
            handle = await writer.handle()
            return str(handle.version)
        finally:
            await context.close()

    async def recent(
        self,
        context: AppContext,
        limit: int,
        collection_id: Optional[str],
    ) -> List[dict[str, Any]]:
        reader = context.reader()
        try:
            items = await reader.fetch_recent(collection_id, limit)
        finally:
            await context.close()
        return [
            {
                "id": item.id,
                "kind": item.kind.value,
                "text": item.display_text,
                "collection": item.collection_name,
                "created_at": item.created_at,
            }
            for item in items
        ]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="groupstore", description="Shared store tooling")
    subparsers = parser.add_subparsers(dest="command", required=True)

    schema_parser = subparsers.add_parser("schema", help="Schema version management")
    schema_sub = schema_parser.add_subparsers(dest="schema_command", required=True)
    snapshot_parser = schema_sub.add_parser("snapshot", help="Export registry lockfile")
    snapshot_parser.add_argument("--output", "-o", help="Output file (default: stdout)")
    check_parser = schema_sub.add_parser("check", help="Check registry against a lockfile")
    check_parser.add_argument("--baseline", required=True, help="Path to lockfile")
    schema_sub.add_parser("plan", help="Print the migration chain")

    subparsers.add_parser("info", help="Show the version tag of the shared file")
    subparsers.add_parser("migrate", help="Open as writer and apply pending migrations")

    recent_parser = subparsers.add_parser("recent", help="List newest items (read-only)")
    recent_parser.add_argument("--limit", type=int, default=5, help="Maximum items")
    recent_parser.add_argument("--collection", help="Restrict to one collection id")
    recent_parser.add_argument("--json", action="store_true", help="Print JSON")

    return parser


def run(argv: Optional[Sequence[str]] = None, config: Optional[AppConfig] = None) -> int:
    """Parse ``argv`` and run one command; returns the exit code."""
    args = build_parser().parse_args(argv)
    try:
        return _dispatch(args, StoreCLI(), config)
    except GroupStoreError as e:
        print(f"error [{e.code}]: {e.message}", file=sys.stderr)
    except (ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
    return 1


def _dispatch(args: argparse.Namespace, cli: StoreCLI, config: Optional[AppConfig]) -> int:
    if args.command == "schema":
        registry = build_registry()
        plan = build_plan()
        if args.schema_command == "snapshot":
            output = cli.snapshot(registry)
            if args.output:
                with open(args.output, "w") as f:
                    f.write(output + "\n")
                print(f"Registry exported to {args.output}", file=sys.stderr)
            else:
                print(output)
            return 0
        if args.schema_command == "check":
            ok, issues = cli.check(registry, plan, args.baseline)
            if ok:
                print("Schema registry and migration plan are consistent with baseline")
                return 0
            print(f"Schema check FAILED with {len(issues)} issue(s):")
            for issue in issues:
                print(f"  - {issue}")
            return 1
        for line in cli.plan_lines(registry, plan):
            print(line)
        return 0

    context = AppContext(config or AppConfig.from_env())
    if args.command == "info":
        print(json.dumps(cli.info(context), indent=2, sort_keys=True))
    elif args.command == "migrate":
        version = asyncio.run(cli.migrate(context))
        print(f"Store is at schema {version}")
    elif args.command == "recent":
        rows = asyncio.run(cli.recent(context, args.limit, args.collection))
        if args.json:
            print(json.dumps(rows, indent=2))
        else:
            for row in rows:
                print(f"{row['text']}\t{row['collection'] or 'Unknown'}")
    return 0
