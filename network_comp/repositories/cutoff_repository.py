"""
Cutoff store - monthly settlement records.
"""
from datetime import date
from typing import Any, List, Optional
import logging

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from models.mlm.monthly_cutoff import MonthlyCutoff
from network_comp.config.constants import CutoffStatus, DEFAULT_CUTOFF_DAY
from network_comp.errors import NotFound, AlreadyExists

logger = logging.getLogger(__name__)


class CutoffRepository:

    def __init__(self, session: Session):
        self.session = session

    def find(self, year: int, month: int) -> Optional[MonthlyCutoff]:
        return self.session.query(MonthlyCutoff).filter_by(year=year, month=month).first()

    def get(self, year: int, month: int) -> MonthlyCutoff:
        """
        Raises:
            NotFound: If no cutoff record exists for the period
        """
        cutoff = self.find(year, month)
        if cutoff is None:
            raise NotFound("Cutoff", f"{year}-{month:02d}")
        return cutoff

    def getById(self, cutoffId: int) -> MonthlyCutoff:
        cutoff = self.session.query(MonthlyCutoff).filter_by(cutoffID=cutoffId).first()
        if cutoff is None:
            raise NotFound("Cutoff", cutoffId)
        return cutoff

    def update(self, cutoffId: int, **fields: Any) -> MonthlyCutoff:
        """Update fields of an existing cutoff record."""
        cutoff = self.getById(cutoffId)
        for key, value in fields.items():
            if not hasattr(MonthlyCutoff, key):
                raise AttributeError(f"MonthlyCutoff has no field '{key}'")
            setattr(cutoff, key, value)
        self.session.flush()
        return cutoff

    def create(
            self,
            year: int,
            month: int,
            cutoffDay: int = DEFAULT_CUTOFF_DAY,
            notes: Optional[str] = None
    ) -> MonthlyCutoff:
        """
        Raises:
            AlreadyExists: If a cutoff already exists for the period
        """
        if self.find(year, month) is not None:
            raise AlreadyExists(f"A cutoff already exists for {year}-{month:02d}")

        cutoff = MonthlyCutoff(
            year=year,
            month=month,
            cutoffDay=cutoffDay,
            notes=notes,
            status=CutoffStatus.PENDING.value
        )
        self.session.add(cutoff)
        self.session.flush()
        logger.info(f"Cutoff created for {year}-{month:02d} (day {cutoffDay})")
        return cutoff

    def list(self, year: Optional[int] = None, month: Optional[int] = None) -> List[MonthlyCutoff]:
        query = self.session.query(MonthlyCutoff)
        if year is not None:
            query = query.filter(MonthlyCutoff.year == year)
        if month is not None:
            query = query.filter(MonthlyCutoff.month == month)
        return query.order_by(MonthlyCutoff.year.desc(), MonthlyCutoff.month.desc()).all()

    def current(self, today: date) -> Optional[MonthlyCutoff]:
        """Cutoff of today's month, or the next upcoming one."""
        cutoff = self.find(today.year, today.month)
        if cutoff is not None:
            return cutoff

        return (
            self.session.query(MonthlyCutoff)
            .filter(
                or_(
                    and_(MonthlyCutoff.year == today.year, MonthlyCutoff.month > today.month),
                    MonthlyCutoff.year > today.year,
                )
            )
            .order_by(MonthlyCutoff.year, MonthlyCutoff.month)
            .first()
        )
