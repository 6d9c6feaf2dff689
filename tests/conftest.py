"""
Shared fixtures: a user directory, a deterministic clock and both stores.
"""

import pendulum
import pytest

from slotswap.adapters.memory_store import MemorySwapStore
from slotswap.adapters.sqlalchemy_store import SqlAlchemySwapStore
from slotswap.adapters.user_directory import ConfiguredUserDirectory
from slotswap.config import UserEntry
from slotswap.services.slot_service import SlotService
from slotswap.services.swap_engine import SwapNegotiationEngine


class StepClock:
    """Clock that advances one second per call so creation order is strict."""

    def __init__(self, start: str = "2024-11-20 08:00"):
        self.now = pendulum.parse(start, tz="UTC")

    def __call__(self):
        self.now = self.now.add(seconds=1)
        return self.now


@pytest.fixture
def directory():
    return ConfiguredUserDirectory([
        UserEntry(id="u-alice", name="alice", email="alice@example.com"),
        UserEntry(id="u-bob", name="bob", email="bob@example.com"),
        UserEntry(id="u-carol", name="carol", email="carol@example.com"),
    ])


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Every engine test runs against both store adapters."""
    if request.param == "memory":
        yield MemorySwapStore()
        return

    sql_store = SqlAlchemySwapStore(url=f"sqlite:///{tmp_path / 'slotswap.db'}")
    sql_store.create_schema()
    yield sql_store
    sql_store.dispose()


@pytest.fixture
def engine(store, directory, clock):
    return SwapNegotiationEngine(store=store, identity_provider=directory, clock=clock)


@pytest.fixture
def slot_service(store, directory, engine, clock):
    return SlotService(
        store=store,
        identity_provider=directory,
        delete_guard=engine.can_delete_slot,
        clock=clock,
    )
