"""
Sales store - read-only access to sales records.
"""
from typing import Iterable, List
import logging

from sqlalchemy.orm import Session

from models.sales_record import SalesRecord
from network_comp.config.constants import SALE_STATUS_COMPLETED
from network_comp.repositories.member_repository import chunked
from network_comp.utils.period import Window

logger = logging.getLogger(__name__)


class SalesRepository:
    """Batched sales queries over a member set and a time window."""

    def __init__(self, session: Session):
        self.session = session

    def query(
            self,
            memberIds: Iterable[int],
            window: Window,
            status: str = SALE_STATUS_COMPLETED
    ) -> List[SalesRecord]:
        """
        Sales of the given members inside [window.start, window.end).

        Args:
            memberIds: Member IDs (any iterable, duplicates ignored)
            window: Time window
            status: Required sale status

        Returns:
            Sales ordered by timestamp, then ID
        """
        ids = list(dict.fromkeys(memberIds))
        if not ids:
            return []

        records = []
        for chunk in chunked(ids):
            records.extend(
                self.session.query(SalesRecord)
                .filter(
                    SalesRecord.memberID.in_(chunk),
                    SalesRecord.status == status,
                    SalesRecord.createdAt >= window.start,
                    SalesRecord.createdAt < window.end,
                )
                .all()
            )

        records.sort(key=lambda r: (r.createdAt, r.saleID))
        logger.debug(f"Sales query: {len(ids)} members, {len(records)} records in {window}")
        return records
