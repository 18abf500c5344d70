# network_comp/errors.py
"""
Exception types raised by the compensation engine.

NotFound and placement errors are fatal to the single operation and are
propagated unchanged; settlement catches per-member failures itself.
"""


class CompensationError(Exception):
    """Base class for all engine errors."""
    pass


class NotFound(CompensationError):
    """Member, upline or cutoff record does not exist."""

    def __init__(self, entity: str, key):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")


class AlreadyExists(CompensationError):
    """Record with the same natural key already exists."""
    pass


class PlacementError(CompensationError):
    """Base class for binary placement failures."""
    pass


class SlotOccupied(PlacementError):
    """Target slot was taken; caller must re-resolve the placement."""

    def __init__(self, uplineId: int, slot: str):
        self.uplineId = uplineId
        self.slot = slot
        super().__init__(f"{slot.capitalize()} slot is already filled for upline {uplineId}")


class PlacementExhausted(PlacementError):
    """Spillover search found no open slot (data-integrity violation)."""
    pass


class InvalidPlacement(PlacementError):
    """Placement would reassign an upline or create a cycle."""
    pass
