"""
Rate store.
"""
from typing import List

from sqlalchemy.orm import Session

from models.mlm.commission_rate import CommissionRate
from network_comp.config.rates import RateTable


class RateRepository:

    def __init__(self, session: Session):
        self.session = session

    def listActive(self) -> List[CommissionRate]:
        return (
            self.session.query(CommissionRate)
            .filter(CommissionRate.isActive == True)  # noqa: E712
            .order_by(CommissionRate.rateID)
            .all()
        )

    def snapshot(self) -> RateTable:
        """Immutable table of the currently active rates."""
        return RateTable.fromRates(self.listActive())
