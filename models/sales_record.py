"""
SalesRecord model - completed or pending purchases reported by the purchase flow.
Read-only for the compensation engine.
"""
from decimal import Decimal
from sqlalchemy import Column, Integer, String, DECIMAL, ForeignKey, Index
from models.base import Base, AuditMixin


class SalesRecord(Base, AuditMixin):
    __tablename__ = 'sales_records'

    saleID = Column(Integer, primary_key=True, autoincrement=True)
    memberID = Column(Integer, ForeignKey('members.memberID'), nullable=False)

    # Denormalized product info (catalog is external)
    productID = Column(Integer, nullable=True)
    productName = Column(String, nullable=True)

    totalPV = Column(DECIMAL(18, 2), default=Decimal("0"), nullable=False)  # point value
    totalAmount = Column(DECIMAL(18, 2), default=Decimal("0"), nullable=False)  # money
    status = Column(String(20), default="pending", nullable=False)  # completed, pending, refunded...

    # Note: createdAt (sale timestamp) from AuditMixin

    __table_args__ = (
        Index('ix_sales_member_status_created', 'memberID', 'status', 'createdAt'),
    )

    def __repr__(self):
        return f"<SalesRecord(saleID={self.saleID}, member={self.memberID}, pv={self.totalPV}, status={self.status})>"
