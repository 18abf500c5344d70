"""
Member model - a participant of the referral network.

Binary topology uses leftChildID/rightChildID/slot, unilevel only uplineID.
Placement fields are written once and never reassigned.
"""
from decimal import Decimal
from sqlalchemy import Column, Integer, String, DECIMAL, ForeignKey, UniqueConstraint
from models.base import Base, AuditMixin


class Member(Base, AuditMixin):
    __tablename__ = 'members'

    # Primary key
    memberID = Column(Integer, primary_key=True, autoincrement=True)

    # Identity (owned by the external registration flow)
    name = Column(String, nullable=True)
    email = Column(String, nullable=True, index=True)
    rank = Column(String, default="start")

    # Sponsor / placement parent
    uplineID = Column(Integer, ForeignKey('members.memberID'), nullable=True, index=True)

    # Binary placement: one occupant per slot
    leftChildID = Column(Integer, ForeignKey('members.memberID'), nullable=True, unique=True)
    rightChildID = Column(Integer, ForeignKey('members.memberID'), nullable=True, unique=True)
    slot = Column(String(5), nullable=True)  # 'left' / 'right' under uplineID

    walletBalance = Column(DECIMAL(18, 2), default=Decimal("0"))

    # Note: createdAt is the join time (from AuditMixin)

    __table_args__ = (
        UniqueConstraint('uplineID', 'slot', name='_upline_slot_uc'),
    )

    def childID(self, slot: str):
        """Child occupying the given binary slot (None if open)."""
        return self.leftChildID if slot == "left" else self.rightChildID

    def __repr__(self):
        return f"<Member(memberID={self.memberID}, upline={self.uplineID}, slot={self.slot})>"
