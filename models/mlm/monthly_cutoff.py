"""
MonthlyCutoff model - settlement period and batch status.
"""
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from models.base import Base, AuditMixin


class MonthlyCutoff(Base, AuditMixin):
    __tablename__ = 'monthly_cutoffs'

    cutoffID = Column(Integer, primary_key=True, autoincrement=True)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    cutoffDay = Column(Integer, nullable=False, default=25)

    status = Column(String(20), default="pending", nullable=False)  # pending, processing, completed, failed
    processedAt = Column(DateTime, nullable=True)
    notes = Column(String, nullable=True)

    # Resume marker for interrupted runs
    lastProcessedMemberID = Column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint('year', 'month', name='_cutoff_period_uc'),
    )

    def __repr__(self):
        return f"<MonthlyCutoff({self.year}-{self.month:02d}, status={self.status})>"
