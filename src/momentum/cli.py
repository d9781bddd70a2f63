"""
Regenerate Command Center
=========================

Rebuilds command center items from analyzed emails and meeting transcripts.

Usage:
    momentum-regenerate              # create missing items
    momentum-regenerate --check      # read-only inventory
    momentum-regenerate --limit=50   # cap rows per source
    momentum-regenerate --reanalyze  # also send unclassified items to the LLM

--check never writes: it creates no tables and reports a missing schema
as an error instead.

Exit codes: 0 on success, 1 on missing configuration or schema.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from momentum.command_center.application import (
    ReanalysisService,
    RegenerationResult,
    RegenerationService,
)
from momentum.command_center.domain import TIER_NAMES
from momentum.command_center.infrastructure import (
    SQLAlchemyCommandCenterRepository,
    SQLAlchemySourceRepository,
)
from momentum.config import settings
from momentum.core.exceptions import ApplicationException, ConfigurationException
from momentum.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
    missing_tables,
)
from momentum.infrastructure.llm import create_llm_client
from momentum.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="momentum-regenerate",
        description="Regenerate command center items from analyzed communications."
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Print the data inventory and exit without writing anything"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=0,
        help="Max emails and transcripts to process (0 = configured defaults)"
    )
    parser.add_argument(
        "--reanalyze",
        action="store_true",
        help="Classify items parked as needs_ai_classification with the LLM"
    )
    return parser


def print_inventory(report) -> None:
    print("=" * 60)
    print("DATA INVENTORY")
    print("=" * 60)
    print(f"Emails:              {report.emails_total} total, {report.emails_inbound} inbound, "
          f"{report.emails_analyzed} analyzed")
    print(f"Transcripts:         {report.transcripts_total} total, {report.transcripts_analyzed} analyzed")
    print(f"Contacts:            {report.contacts}")
    print(f"Companies:           {report.companies}")
    print(f"Deals:               {report.deals}")
    print(f"Active items:        {report.active_items}")
    print(f"Items with hash:     {report.items_with_hash}")


def print_summary(result: RegenerationResult) -> None:
    print("=" * 60)
    print("REGENERATION SUMMARY")
    print("=" * 60)
    print(f"Emails processed:    {result.emails_processed}")
    print(f"Transcripts:         {result.transcripts_processed} "
          f"({result.transcripts_linked_to_company} linked to a company)")
    print(f"Items created:       {result.items_created}")
    print(f"Duplicates skipped:  {result.duplicates_skipped}")
    print(f"Errors:              {len(result.errors)}")
    print(f"Active items now:    {result.final_active_count}")
    print("\nBy tier:")
    for tier, name in TIER_NAMES.items():
        print(f"  Tier {tier} ({name}): {result.tier_counts.get(tier, 0)}")

    if result.items_needing_reanalysis:
        print(f"\n{result.items_needing_reanalysis} items need AI classification "
              f"(parked in tier 5). Run with --reanalyze to classify them.")


async def run(args: argparse.Namespace) -> int:
    init_database()
    try:
        if args.check:
            missing = await missing_tables()
            if missing:
                print(f"Error: database is missing tables: {', '.join(missing)}", file=sys.stderr)
                return 1
        else:
            await create_tables()

        async with get_session_context() as session:
            service = RegenerationService(
                SQLAlchemyCommandCenterRepository(session),
                SQLAlchemySourceRepository(session),
            )
            print_inventory(await service.inventory())
            if args.check:
                return 0

            result = await service.regenerate(limit=args.limit)
            print_summary(result)

        if args.reanalyze:
            async with get_session_context() as session:
                reanalysis = ReanalysisService(
                    SQLAlchemyCommandCenterRepository(session),
                    create_llm_client(),
                )
                outcome = await reanalysis.reanalyze(limit=args.limit or None)
            print(f"\nReanalysis: {outcome.to_dict()}")
        return 0
    finally:
        await close_database()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=settings.log_level, environment=settings.environment)

    if args.limit < 0:
        print("Error: --limit must be >= 0", file=sys.stderr)
        return 1

    if not settings.database_url:
        print("Error: DATABASE_URL is not set", file=sys.stderr)
        return 1

    try:
        return asyncio.run(run(args))
    except ConfigurationException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except ApplicationException as e:
        logger.error("Regeneration failed", extra={"error": e.message})
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
