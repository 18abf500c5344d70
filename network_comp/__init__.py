# network_comp/__init__.py
"""
Network compensation engine - placement, volume aggregation, commissions
and monthly settlement for binary and unilevel networks.
"""

# Services
from network_comp.services.placement_service import PlacementService
from network_comp.services.volume_service import VolumeService, LegVolumes
from network_comp.services.commission_service import CommissionService
from network_comp.services.structure_service import (
    StructureService,
    NetworkStructure,
    BinaryStructure,
    UnilevelStructure,
)
from network_comp.services.settlement_service import SettlementService
from network_comp.services.config_service import ConfigService

# Configuration
from network_comp.config.constants import Topology, Slot, RateKind, RewardType, CutoffStatus
from network_comp.config.rates import RateTable
from network_comp.config.topology import TopologyConfig

# Results and errors
from network_comp.breakdown import CommissionBreakdown
from network_comp.errors import (
    CompensationError,
    NotFound,
    AlreadyExists,
    PlacementError,
    SlotOccupied,
    PlacementExhausted,
    InvalidPlacement,
)

__all__ = [
    # Services
    'PlacementService',
    'VolumeService',
    'LegVolumes',
    'CommissionService',
    'StructureService',
    'NetworkStructure',
    'BinaryStructure',
    'UnilevelStructure',
    'SettlementService',
    'ConfigService',

    # Config
    'Topology',
    'Slot',
    'RateKind',
    'RewardType',
    'CutoffStatus',
    'RateTable',
    'TopologyConfig',

    # Results / errors
    'CommissionBreakdown',
    'CompensationError',
    'NotFound',
    'AlreadyExists',
    'PlacementError',
    'SlotOccupied',
    'PlacementExhausted',
    'InvalidPlacement',
]
