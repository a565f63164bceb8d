"""
Run a membership reconciliation sweep against the configured database.

Usage:
    foundly-reconcile [--dry-run] [--log-level info] [--log-format text]

Prints the report as JSON. Exits 1 when inconsistencies remain or a document could not be processed.
"""

import argparse
import asyncio
import json
import sys

from foundly.core.config import get_settings
from foundly.core.errors import FoundlyError
from foundly.core.logging import configure_logging
from foundly.core.store import get_store
from foundly.services.reconciler import reconcile
from foundly_shared.schemas.memberships import ReconcileReport


async def run_sweep(dry_run: bool) -> ReconcileReport:
    return await reconcile(get_store(), dry_run=dry_run)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Reconcile user/organization memberships.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without writing",
    )
    parser.add_argument("--log-level", default=settings.log_level, help="Log level")
    parser.add_argument(
        "--log-format",
        default="text",
        choices=["json", "text"],
        help="Log output format (default: text)",
    )
    return parser


def run(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_format)

    try:
        report = asyncio.run(run_sweep(args.dry_run))
    except FoundlyError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    print(json.dumps(report.model_dump(), indent=2))
    return 1 if report.residual_inconsistencies or report.failures else 0


if __name__ == "__main__":
    sys.exit(run())
