"""
Snapshot store - monthly settled earnings.
"""
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from models.mlm.monthly_snapshot import MonthlySnapshot

logger = logging.getLogger(__name__)


class SnapshotRepository:

    def __init__(self, session: Session):
        self.session = session

    def get(self, memberId: int, year: int, month: int) -> Optional[MonthlySnapshot]:
        return self.session.query(MonthlySnapshot).filter_by(
            memberID=memberId,
            year=year,
            month=month
        ).first()

    def upsert(self, memberId: int, year: int, month: int, fields: Dict[str, Any]) -> MonthlySnapshot:
        """
        Create or overwrite the snapshot for (member, year, month).

        Every given field replaces the stored value; nothing is accumulated.
        """
        snapshot = self.get(memberId, year, month)
        if snapshot is None:
            snapshot = MonthlySnapshot(memberID=memberId, year=year, month=month)
            self.session.add(snapshot)
            action = "created"
        else:
            action = "updated"

        for key, value in fields.items():
            if not hasattr(MonthlySnapshot, key):
                raise AttributeError(f"MonthlySnapshot has no field '{key}'")
            setattr(snapshot, key, value)

        self.session.flush()
        logger.debug(f"Snapshot {action} for member {memberId} ({year}-{month:02d})")
        return snapshot

    def listFor(
            self,
            memberId: int,
            year: Optional[int] = None,
            month: Optional[int] = None
    ) -> List[MonthlySnapshot]:
        """Snapshots of a member, newest period first."""
        query = self.session.query(MonthlySnapshot).filter(MonthlySnapshot.memberID == memberId)
        if year is not None:
            query = query.filter(MonthlySnapshot.year == year)
        if month is not None:
            query = query.filter(MonthlySnapshot.month == month)
        return query.order_by(MonthlySnapshot.year.desc(), MonthlySnapshot.month.desc()).all()

    def topEarners(self, year: int, month: int, limit: int = 10) -> List[MonthlySnapshot]:
        return (
            self.session.query(MonthlySnapshot)
            .filter_by(year=year, month=month)
            .order_by(MonthlySnapshot.totalEarnings.desc(), MonthlySnapshot.memberID)
            .limit(limit)
            .all()
        )
