# network_comp/services/settlement_service.py
"""
Monthly settlement: per-member snapshots and the cutoff batch.
"""
from typing import Callable, Dict, List, Optional
import asyncio
import logging

from sqlalchemy.orm import Session

from models.base import _get_current_time
from models.mlm.monthly_snapshot import MonthlySnapshot
from network_comp.config.constants import Topology, CutoffStatus
from network_comp.config.rates import RateTable
from network_comp.errors import NotFound
from network_comp.repositories.cutoff_repository import CutoffRepository
from network_comp.repositories.member_repository import MemberRepository
from network_comp.repositories.rate_repository import RateRepository
from network_comp.repositories.snapshot_repository import SnapshotRepository
from network_comp.services.structure_service import StructureService, NetworkStructure
from network_comp.services.volume_service import VolumeService
from network_comp.utils.period import monthWindow, money

logger = logging.getLogger(__name__)


class SettlementService:
    """Settles commissions into MonthlySnapshot rows."""

    def __init__(self, session: Session):
        self.session = session
        self.members = MemberRepository(session)
        self.snapshots = SnapshotRepository(session)
        self.cutoffs = CutoffRepository(session)
        self.volumes = VolumeService(session)

    # ============================================================
    # SINGLE MEMBER
    # ============================================================

    async def simulateEarnings(
            self,
            memberId: int,
            year: int,
            month: int,
            structure: Optional[NetworkStructure] = None,
            rates: Optional[RateTable] = None,
            commit: bool = True
    ) -> MonthlySnapshot:
        """
        Calculate a member's month and upsert its snapshot.

        Re-running overwrites the same row, nothing accumulates.

        Args:
            memberId: Member ID
            year: Year
            month: Month (1-12)
            structure: Active structure (resolved from configuration when omitted)
            rates: Rate snapshot (read once here when omitted)
            commit: Commit after the upsert (the batch commits itself)

        Raises:
            NotFound: If member does not exist
        """
        window = monthWindow(year, month)
        if structure is None:
            structure = StructureService(self.session).resolve()
        if rates is None:
            rates = RateRepository(self.session).snapshot()

        tree = structure.buildTree(memberId)
        breakdown = await structure.calculateCommissions(memberId, window, rates=rates, tree=tree)
        personalPV = await self.volumes.personalPV(memberId, window)
        group = await structure.groupVolumes(memberId, window, tree=tree)

        isBinary = structure.topology == Topology.BINARY.value
        structureBonus = breakdown.structureBonusAmount

        record = breakdown.toDict()
        record["volumes"] = {
            "personalPV": float(personalPV),
            "leftLegPV": float(group["leftLegPV"]),
            "rightLegPV": float(group["rightLegPV"]),
            "totalGroupPV": float(group["totalGroupPV"]),
        }

        snapshot = self.snapshots.upsert(memberId, year, month, {
            "topology": structure.topology,
            "personalPV": money(personalPV),
            "leftLegPV": money(group["leftLegPV"]),
            "rightLegPV": money(group["rightLegPV"]),
            "totalGroupPV": money(group["totalGroupPV"]),
            "directJoinBonus": breakdown.directJoinBonus,
            "levelOverrides": breakdown.levelOverridesTotal,
            "groupVolumeBonus": structureBonus if isBinary else money(0),
            "performanceBonus": money(0) if isBinary else structureBonus,
            "totalEarnings": breakdown.total,
            "breakdown": record,
        })

        if commit:
            self.session.commit()

        logger.debug(f"Earnings for member {memberId} ({year}-{month:02d}): {breakdown.total}")
        return snapshot

    # ============================================================
    # BATCH
    # ============================================================

    async def processCutoff(
            self,
            year: int,
            month: int,
            shouldCancel: Optional[Callable[[], bool]] = None,
            resume: bool = True
    ) -> Dict:
        """
        Settle every member for the month.

        Each member runs in its own savepoint; a failing member is recorded
        and the batch goes on. Progress is persisted after every member so an
        interrupted or cancelled run resumes after the last processed member.

        Args:
            year: Year
            month: Month (1-12)
            shouldCancel: Checked between members; True stops the run
                with status left 'processing'
            resume: Skip members up to the stored marker of an interrupted run

        Returns:
            Dict with counts and per-member results

        Raises:
            NotFound: If no cutoff record exists for the period
        """
        cutoff = self.cutoffs.get(year, month)
        cutoffId = cutoff.cutoffID
        period = f"{year}-{month:02d}"

        try:
            afterId = None
            if (resume and cutoff.status == CutoffStatus.PROCESSING.value
                    and cutoff.lastProcessedMemberID is not None):
                afterId = cutoff.lastProcessedMemberID
                logger.info(f"Resuming cutoff {period} after member {afterId}")

            self.cutoffs.update(
                cutoffId,
                status=CutoffStatus.PROCESSING.value,
                lastProcessedMemberID=afterId
            )
            self.session.commit()

            # One configuration and rate snapshot for the whole run
            structure = StructureService(self.session).resolve()
            rates = RateRepository(self.session).snapshot()

            memberIds = self.members.listAllIds(afterId)
            logger.info(f"Processing cutoff {period}: {len(memberIds)} members ({structure.topology})")

            results: List[Dict] = []
            for memberId in memberIds:
                if shouldCancel is not None and shouldCancel():
                    logger.warning(f"Cutoff {period} cancelled after {len(results)} members")
                    return self._summary(year, month, results, cancelled=True)

                results.append(await self._settleMember(memberId, year, month, structure, rates))

                self.cutoffs.update(cutoffId, lastProcessedMemberID=memberId)
                self.session.commit()

                # Let stop requests and other jobs run between members
                await asyncio.sleep(0)

            summary = self._summary(year, month, results)
            self.cutoffs.update(
                cutoffId,
                status=CutoffStatus.COMPLETED.value,
                processedAt=_get_current_time(),
                lastProcessedMemberID=None,
                notes=summary["notes"]
            )
            self.session.commit()

            logger.info(f"✓ Cutoff {period} completed: {summary['notes']}")
            return summary

        except Exception as e:
            logger.error(f"Cutoff {period} failed: {e}", exc_info=True)
            self.session.rollback()
            try:
                self.cutoffs.update(cutoffId, status=CutoffStatus.FAILED.value, notes=f"Error: {e}")
                self.session.commit()
            except NotFound:
                logger.warning(f"Cutoff record {cutoffId} disappeared, status not updated")
            raise

    async def _settleMember(
            self,
            memberId: int,
            year: int,
            month: int,
            structure: NetworkStructure,
            rates: RateTable
    ) -> Dict:
        try:
            with self.session.begin_nested():
                snapshot = await self.simulateEarnings(
                    memberId, year, month,
                    structure=structure,
                    rates=rates,
                    commit=False
                )
            return {
                "memberId": memberId,
                "success": True,
                "totalEarnings": snapshot.totalEarnings,
            }
        except Exception as e:
            logger.error(f"Error settling member {memberId} for {year}-{month:02d}: {e}", exc_info=True)
            return {
                "memberId": memberId,
                "success": False,
                "error": str(e),
            }

    @staticmethod
    def _summary(year: int, month: int, results: List[Dict], cancelled: bool = False) -> Dict:
        succeeded = sum(1 for r in results if r["success"])
        failed = len(results) - succeeded
        return {
            "success": not cancelled,
            "cancelled": cancelled,
            "year": year,
            "month": month,
            "processed": len(results),
            "succeeded": succeeded,
            "failed": failed,
            "notes": f"Processed {len(results)} members. {succeeded} succeeded, {failed} failed.",
            "results": results,
        }

    # ============================================================
    # REPORTING
    # ============================================================

    async def getMonthlyPerformance(
            self,
            memberId: int,
            year: Optional[int] = None,
            month: Optional[int] = None
    ) -> List[MonthlySnapshot]:
        """Member snapshots, newest first."""
        return self.snapshots.listFor(memberId, year, month)

    async def getTopEarners(self, year: int, month: int, limit: int = 10) -> List[MonthlySnapshot]:
        return self.snapshots.topEarners(year, month, limit)
