"""
Database models for the compensation engine.
Import all models here so Base.metadata knows every table.
"""

# Base and mixins
from models.base import Base, AuditMixin

# Core models
from models.member import Member
from models.sales_record import SalesRecord

# MLM models
from models.mlm.commission_rate import CommissionRate
from models.mlm.system_config import SystemConfig
from models.mlm.performance_bonus_tier import PerformanceBonusTier
from models.mlm.monthly_snapshot import MonthlySnapshot
from models.mlm.monthly_cutoff import MonthlyCutoff

__all__ = [
    # Base
    'Base',
    'AuditMixin',

    # Core
    'Member',
    'SalesRecord',

    # MLM
    'CommissionRate',
    'SystemConfig',
    'PerformanceBonusTier',
    'MonthlySnapshot',
    'MonthlyCutoff',
]
