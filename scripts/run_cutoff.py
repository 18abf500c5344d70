#!/usr/bin/env python3
"""
Run a monthly settlement from the shell.

Usage:
    python scripts/run_cutoff.py --year 2025 --month 5 [--create] [--no-resume]
    python scripts/run_cutoff.py --member-id 42 --year 2025 --month 5
"""

import sys
import os
import argparse
import asyncio

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from core.db import get_db_session_ctx, setup_database, dispose_engine
from network_comp.errors import CompensationError
from network_comp.repositories.config_repository import ConfigRepository
from network_comp.services.config_service import ConfigService
from network_comp.services.settlement_service import SettlementService

import logging

logger = logging.getLogger(__name__)


async def run(args) -> int:
    with get_db_session_ctx() as session:
        ConfigRepository(session).ensureDefaults()
        settlement = SettlementService(session)

        if args.member_id:
            snapshot = await settlement.simulateEarnings(args.member_id, args.year, args.month)
            print(f"Member {snapshot.memberID} ({args.year}-{args.month:02d})")
            print(f"  Personal PV:        {snapshot.personalPV}")
            print(f"  Left / right leg:   {snapshot.leftLegPV} / {snapshot.rightLegPV}")
            print(f"  Group PV:           {snapshot.totalGroupPV}")
            print(f"  Direct join bonus:  {snapshot.directJoinBonus}")
            print(f"  Level overrides:    {snapshot.levelOverrides}")
            print(f"  Group volume bonus: {snapshot.groupVolumeBonus}")
            print(f"  Performance bonus:  {snapshot.performanceBonus}")
            print(f"  Total:              {snapshot.totalEarnings}")
            return 0

        if args.create:
            configService = ConfigService(session)
            existing = await configService.getMonthlyCutoffs(args.year, args.month)
            if not existing:
                await configService.createMonthlyCutoff(args.year, args.month)
                print(f"✓ Cutoff {args.year}-{args.month:02d} created")

        result = await settlement.processCutoff(args.year, args.month, resume=not args.no_resume)

        print(result["notes"])
        for entry in result["results"]:
            if not entry["success"]:
                print(f"  ❌ Member {entry['memberId']}: {entry['error']}")
        return 0 if result["failed"] == 0 else 1


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Run monthly commission settlement')
    parser.add_argument('--year', type=int, required=True, help='Settlement year')
    parser.add_argument('--month', type=int, required=True, help='Settlement month (1-12)')
    parser.add_argument('--member-id', type=int,
                        help='Only simulate earnings for this member')
    parser.add_argument('--create', action='store_true',
                        help='Create the cutoff record when missing')
    parser.add_argument('--no-resume', action='store_true',
                        help='Reprocess every member even after an interrupted run')
    args = parser.parse_args()

    Config.initialize_from_env()
    Config.validate_critical_keys()

    logging.basicConfig(
        level=getattr(logging, Config.get(Config.LOG_LEVEL, "INFO"), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

    setup_database()

    try:
        sys.exit(asyncio.run(run(args)))
    except CompensationError as e:
        print(f"❌ {e}")
        sys.exit(2)
    finally:
        dispose_engine()


if __name__ == "__main__":
    main()
