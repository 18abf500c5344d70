"""
Time windows and money rounding helpers.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple

from network_comp.config.constants import CENT


@dataclass(frozen=True)
class Window:
    """Half-open time window [start, end)."""
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"Window end {self.end} is before start {self.start}")

    def __str__(self):
        return f"[{self.start.isoformat()} .. {self.end.isoformat()})"


def monthWindow(year: int, month: int) -> Window:
    """
    Calendar month window.

    Args:
        year: Year
        month: Month (1-12)

    Returns:
        Window from the 1st of the month to the 1st of the next month
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be 1-12, got {month}")
    nextYear, nextMonth = nextPeriod(year, month)
    return Window(datetime(year, month, 1), datetime(nextYear, nextMonth, 1))


def nextPeriod(year: int, month: int) -> Tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def previousPeriod(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def money(value) -> Decimal:
    """Round to cents (half up)."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
