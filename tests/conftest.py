# tests/conftest.py
"""
Pytest configuration and shared fixtures for the compensation engine tests.

Every test gets a fresh in-memory SQLite database.

Run:
    pytest tests -v
"""
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import Config
from core.db import enable_sqlite_savepoints
from models import (
    Base, Member, SalesRecord, CommissionRate, PerformanceBonusTier, MonthlyCutoff
)
from network_comp.repositories.config_repository import ConfigRepository

# =============================================================================
# CONSTANTS
# =============================================================================

YEAR = 2025
MONTH = 5

# Inside May 2025
IN_PERIOD = datetime(2025, 5, 10, 12, 0)

# Joined long before the test period
JOINED_EARLIER = datetime(2024, 1, 15, 9, 0)


# =============================================================================
# CONFIG ISOLATION
# =============================================================================

@pytest.fixture(autouse=True)
def reset_config():
    """Environment config is not loaded in tests: built-in defaults apply."""
    Config.reset()
    yield
    Config.reset()


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    """In-memory database shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Create database session for each test."""
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def session_factory(session):
    """Context manager factory handing out the test session (for the scheduler)."""

    @contextmanager
    def _factory():
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise

    return _factory


# =============================================================================
# FACTORY FIXTURES
# =============================================================================

@pytest.fixture
def make_member(session):
    """Create a member; uplineID/slot are not linked on the upline side."""

    def _make(name=None, uplineID=None, createdAt=JOINED_EARLIER, **fields):
        member = Member(name=name, uplineID=uplineID, createdAt=createdAt, **fields)
        session.add(member)
        session.commit()
        return member

    return _make


@pytest.fixture
def link(session):
    """Place child into upline's binary slot directly (no placement checks)."""

    def _link(upline, child, slot):
        if slot == "left":
            upline.leftChildID = child.memberID
        else:
            upline.rightChildID = child.memberID
        child.uplineID = upline.memberID
        child.slot = slot
        session.commit()

    return _link


@pytest.fixture
def add_sale(session):

    def _add(member, pv, amount=None, status="completed", createdAt=IN_PERIOD, **fields):
        sale = SalesRecord(
            memberID=member.memberID,
            totalPV=Decimal(str(pv)),
            totalAmount=Decimal(str(amount if amount is not None else pv)),
            status=status,
            createdAt=createdAt,
            **fields
        )
        session.add(sale)
        session.commit()
        return sale

    return _add


@pytest.fixture
def add_rate(session):

    def _add(kind, rewardType="percentage", level=None, percentage=0, fixedAmount=0, isActive=True):
        rate = CommissionRate(
            kind=kind,
            rewardType=rewardType,
            level=level,
            percentage=Decimal(str(percentage)),
            fixedAmount=Decimal(str(fixedAmount)),
            isActive=isActive
        )
        session.add(rate)
        session.commit()
        return rate

    return _add


@pytest.fixture
def set_config(session):
    """Write system_config rows, e.g. set_config(mlm_structure="unilevel")."""

    def _set(**values):
        repository = ConfigRepository(session)
        for key, value in values.items():
            repository.set(key, value)
        session.commit()

    return _set


@pytest.fixture
def add_tier(session):

    def _add(name, minSales, maxSales=None, bonusType="percentage", percentage=0, fixedAmount=0):
        tier = PerformanceBonusTier(
            name=name,
            minSales=Decimal(str(minSales)),
            maxSales=None if maxSales is None else Decimal(str(maxSales)),
            bonusType=bonusType,
            percentage=Decimal(str(percentage)),
            fixedAmount=Decimal(str(fixedAmount))
        )
        session.add(tier)
        session.commit()
        return tier

    return _add


@pytest.fixture
def default_tiers(add_tier):
    """Bronze/Silver/Gold/Platinum schedule."""
    return [
        add_tier("Bronze", 1000, 2999, percentage=2),
        add_tier("Silver", 3000, 5999, percentage=3),
        add_tier("Gold", 6000, 9999, percentage=5),
        add_tier("Platinum", 10000, None, percentage=7),
    ]


@pytest.fixture
def make_cutoff(session):

    def _make(year=YEAR, month=MONTH, status="pending", cutoffDay=25, **fields):
        cutoff = MonthlyCutoff(year=year, month=month, status=status, cutoffDay=cutoffDay, **fields)
        session.add(cutoff)
        session.commit()
        return cutoff

    return _make


# =============================================================================
# TREE FIXTURES
# =============================================================================

@pytest.fixture
def binary_tree(make_member, link):
    """
    Small binary network:

              R
            /   \\
           A     B
          / \\   /
         C   D E
    """
    nodes = {name: make_member(name=name) for name in "RABCDE"}
    link(nodes["R"], nodes["A"], "left")
    link(nodes["R"], nodes["B"], "right")
    link(nodes["A"], nodes["C"], "left")
    link(nodes["A"], nodes["D"], "right")
    link(nodes["B"], nodes["E"], "left")
    return nodes


@pytest.fixture
def unilevel_tree(make_member):
    """
    Unilevel network: R -> (A, B, C), A -> (D, E), D -> F
    """
    nodes = {"R": make_member(name="R")}
    for name in "ABC":
        nodes[name] = make_member(name=name, uplineID=nodes["R"].memberID)
    for name in "DE":
        nodes[name] = make_member(name=name, uplineID=nodes["A"].memberID)
    nodes["F"] = make_member(name="F", uplineID=nodes["D"].memberID)
    return nodes
