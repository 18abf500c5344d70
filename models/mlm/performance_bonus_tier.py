"""
PerformanceBonusTier model - schedule mapping personal sales amount to a bonus.
"""
from decimal import Decimal
from sqlalchemy import Column, Integer, String, DECIMAL, Boolean
from models.base import Base, AuditMixin


class PerformanceBonusTier(Base, AuditMixin):
    __tablename__ = 'performance_bonus_tiers'

    tierID = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)

    minSales = Column(DECIMAL(18, 2), nullable=False)
    maxSales = Column(DECIMAL(18, 2), nullable=True)  # NULL = open-ended

    bonusType = Column(String, default="percentage", nullable=False)  # percentage / fixed
    percentage = Column(DECIMAL(9, 4), default=Decimal("0"))
    fixedAmount = Column(DECIMAL(18, 2), default=Decimal("0"))

    isActive = Column(Boolean, default=True)

    def __repr__(self):
        return f"<PerformanceBonusTier(name={self.name}, min={self.minSales}, max={self.maxSales})>"
