"""
Tests for slot and swap status transition rules.
"""

import pendulum
import pytest

from slotswap.domain.exceptions import InvalidOperationError
from slotswap.domain.models import Slot, SlotStatus, SwapStatus
from slotswap.domain.state_machine import (
    can_delete_slot,
    check_engine_transition,
    check_initial_status,
    check_owner_transition,
    check_swap_transition,
)


def _slot(status: SlotStatus) -> Slot:
    return Slot(
        id="s1",
        title="Standup",
        start=pendulum.parse("2024-11-25 10:00", tz="Europe/Berlin"),
        end=pendulum.parse("2024-11-25 11:00", tz="Europe/Berlin"),
        owner_id="u-alice",
        status=status,
    )


@pytest.mark.parametrize(
    "status, allowed",
    [
        (SlotStatus.BUSY, True),
        (SlotStatus.SWAPPABLE, True),
        (SlotStatus.SWAP_PENDING, False),
    ],
)
def test_can_delete_slot_only_blocks_pending(status, allowed):
    assert can_delete_slot(_slot(status)) is allowed


def test_initial_status_cannot_be_pending():
    check_initial_status(SlotStatus.BUSY)
    check_initial_status(SlotStatus.SWAPPABLE)

    with pytest.raises(InvalidOperationError):
        check_initial_status(SlotStatus.SWAP_PENDING)


class TestOwnerTransitions:
    """Owners toggle BUSY and SWAPPABLE freely and nothing else."""

    @pytest.mark.parametrize(
        "current, target",
        [
            (SlotStatus.BUSY, SlotStatus.SWAPPABLE),
            (SlotStatus.SWAPPABLE, SlotStatus.BUSY),
            (SlotStatus.BUSY, SlotStatus.BUSY),
        ],
    )
    def test_allowed(self, current, target):
        check_owner_transition(current, target)

    def test_owner_cannot_set_pending(self):
        with pytest.raises(InvalidOperationError, match="Cannot set slot status"):
            check_owner_transition(SlotStatus.SWAPPABLE, SlotStatus.SWAP_PENDING)

    def test_pending_slot_is_locked(self):
        with pytest.raises(InvalidOperationError, match="pending swap"):
            check_owner_transition(SlotStatus.SWAP_PENDING, SlotStatus.BUSY)


class TestEngineTransitions:
    """The engine only moves slots into and out of SWAP_PENDING."""

    @pytest.mark.parametrize(
        "current, target",
        [
            (SlotStatus.SWAPPABLE, SlotStatus.SWAP_PENDING),
            (SlotStatus.SWAP_PENDING, SlotStatus.BUSY),
            (SlotStatus.SWAP_PENDING, SlotStatus.SWAPPABLE),
        ],
    )
    def test_allowed(self, current, target):
        check_engine_transition(current, target)

    @pytest.mark.parametrize(
        "current, target",
        [
            (SlotStatus.BUSY, SlotStatus.SWAP_PENDING),
            (SlotStatus.SWAP_PENDING, SlotStatus.SWAP_PENDING),
            (SlotStatus.SWAPPABLE, SlotStatus.BUSY),
        ],
    )
    def test_rejected(self, current, target):
        with pytest.raises(InvalidOperationError, match="Illegal slot transition"):
            check_engine_transition(current, target)


@pytest.mark.parametrize("terminal", [SwapStatus.ACCEPTED, SwapStatus.REJECTED])
def test_terminal_swap_states_are_final(terminal):
    check_swap_transition(SwapStatus.PENDING, terminal)

    for target in SwapStatus:
        with pytest.raises(InvalidOperationError, match="already been processed"):
            check_swap_transition(terminal, target)
