"""
CommissionRate model - administrator-maintained rate table.
"""
from decimal import Decimal
from sqlalchemy import Column, Integer, String, DECIMAL, Boolean, UniqueConstraint
from models.base import Base, AuditMixin


class CommissionRate(Base, AuditMixin):
    __tablename__ = 'commission_rates'

    rateID = Column(Integer, primary_key=True, autoincrement=True)

    kind = Column(String, nullable=False)  # direct_join, level_override, group_volume, performance
    rewardType = Column(String, default="percentage", nullable=False)  # percentage / fixed
    level = Column(Integer, nullable=True)  # only for level_override

    percentage = Column(DECIMAL(9, 4), default=Decimal("0"))
    fixedAmount = Column(DECIMAL(18, 2), default=Decimal("0"))

    description = Column(String, nullable=True)
    isActive = Column(Boolean, default=True, index=True)

    __table_args__ = (
        UniqueConstraint('kind', 'level', name='_rate_kind_level_uc'),
    )

    def __repr__(self):
        return (
            f"<CommissionRate(kind={self.kind}, level={self.level}, "
            f"type={self.rewardType}, pct={self.percentage}, fixed={self.fixedAmount})>"
        )
