#!/usr/bin/env python3
"""
Display the network structure tree.

Uses the active topology (binary or unilevel) and its max depth unless
overridden on the command line.

Usage:
    python scripts/show_tree.py --root-id MEMBER_ID [--max-depth DEPTH] [--year Y --month M]
"""

import sys
import os
import argparse
import asyncio

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from core.db import get_session, dispose_engine
from models.member import Member
from network_comp.errors import NotFound
from network_comp.repositories.sales_repository import SalesRepository
from network_comp.services.structure_service import StructureService
from network_comp.services.volume_service import sumPV
from network_comp.utils.period import monthWindow
from network_comp.utils.tree_builder import memberIds

import logging

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def print_tree(tree, pvByMember=None):
    """Print ASCII tree of the structure."""

    def print_node(node, prefix="", is_last=True):
        connector = "└─ " if is_last else "├─ "
        member = node.member
        slot_display = f"({node.slot[0].upper()}) " if node.slot else ""
        rank_display = f"[{member.rank}]" if member.rank and member.rank != "start" else ""
        pv_display = ""
        if pvByMember is not None:
            pv_display = f"PV:{pvByMember.get(member.memberID, 0)}"

        print(
            f"{prefix}{connector}{slot_display}"
            f"{member.name or '-'} (ID:{member.memberID}) {rank_display} {pv_display}"
        )

        for i, child in enumerate(node.children):
            is_last_child = (i == len(node.children) - 1)
            new_prefix = prefix + ("    " if is_last else "│   ")
            print_node(child, new_prefix, is_last_child)

    print("\n" + "=" * 80)
    print("NETWORK STRUCTURE TREE")
    print("=" * 80)
    print("\nLegend:")
    print("  (L)/(R) = Binary slot under the upline")
    print("  [rank] = Member rank (if not 'start')")
    print("  PV = Completed sales PV in the selected month")
    print("\n" + "=" * 80 + "\n")
    print_node(tree)
    print("\n" + "=" * 80 + "\n")


def print_statistics(session):
    """Print database statistics."""
    total_members = session.query(Member).count()
    placed = session.query(Member).filter(Member.uplineID.isnot(None)).count()

    print("\n" + "=" * 80)
    print("DATABASE STATISTICS")
    print("=" * 80 + "\n")

    print(f"Total members:  {total_members}")
    print(f"Placed members: {placed}")
    print(f"Roots:          {total_members - placed}")

    print("\nMembers by rank:")
    from sqlalchemy import func
    rank_counts = session.query(
        Member.rank,
        func.count(Member.memberID)
    ).group_by(Member.rank).all()

    for rank, count in rank_counts:
        print(f"  {rank or '-':12} {count:3} ({count / total_members * 100:.1f}%)")

    print("\n" + "=" * 80 + "\n")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Display network structure tree')
    parser.add_argument('--root-id', type=int, required=True,
                        help='Member ID of the root')
    parser.add_argument('--max-depth', type=int,
                        help='Maximum depth to display (default: active topology depth)')
    parser.add_argument('--year', type=int, help='Show PV for this year')
    parser.add_argument('--month', type=int, help='Show PV for this month')
    parser.add_argument('--stats', action='store_true',
                        help='Show statistics only')
    args = parser.parse_args()

    Config.initialize_from_env()

    session = get_session()
    try:
        if args.stats:
            print_statistics(session)
            return

        structure = StructureService(session).resolve()
        try:
            tree = structure.buildTree(args.root_id, args.max_depth)
        except NotFound:
            print(f"❌ Member {args.root_id} not found!")
            return

        pvByMember = None
        if args.year and args.month:
            sales = SalesRepository(session).query(memberIds(tree), monthWindow(args.year, args.month))
            pvByMember = {}
            for sale in sales:
                pvByMember[sale.memberID] = pvByMember.get(sale.memberID, 0) + sumPV([sale])

        depth = structure.maxDepth if args.max_depth is None else args.max_depth
        print(f"Topology: {structure.topology}, depth: {depth}")
        print_tree(tree, pvByMember)

        if args.year and args.month:
            volumes = asyncio.run(structure.groupVolumes(args.root_id, monthWindow(args.year, args.month), tree))
            for key, value in volumes.items():
                print(f"{key:14} {value}")

        print_statistics(session)

    finally:
        session.close()
        dispose_engine()


if __name__ == "__main__":
    main()
