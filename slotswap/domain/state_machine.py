"""
Status transition rules for slots and swap requests.

Pure domain logic: no store access, no I/O. The engine and the slot service
consult these tables before staging any write.
"""

from typing import Dict, FrozenSet

from .exceptions import InvalidOperationError
from .models import Slot, SlotStatus, SwapStatus


# Transitions a slot owner may perform directly.
OWNER_SLOT_TRANSITIONS: Dict[SlotStatus, FrozenSet[SlotStatus]] = {
    SlotStatus.BUSY: frozenset({SlotStatus.BUSY, SlotStatus.SWAPPABLE}),
    SlotStatus.SWAPPABLE: frozenset({SlotStatus.BUSY, SlotStatus.SWAPPABLE}),
    SlotStatus.SWAP_PENDING: frozenset(),
}

# Transitions only the negotiation engine performs.
ENGINE_SLOT_TRANSITIONS: Dict[SlotStatus, FrozenSet[SlotStatus]] = {
    SlotStatus.BUSY: frozenset(),
    SlotStatus.SWAPPABLE: frozenset({SlotStatus.SWAP_PENDING}),
    SlotStatus.SWAP_PENDING: frozenset({SlotStatus.BUSY, SlotStatus.SWAPPABLE}),
}

SWAP_TRANSITIONS: Dict[SwapStatus, FrozenSet[SwapStatus]] = {
    SwapStatus.PENDING: frozenset({SwapStatus.ACCEPTED, SwapStatus.REJECTED}),
    SwapStatus.ACCEPTED: frozenset(),
    SwapStatus.REJECTED: frozenset(),
}

INITIAL_SLOT_STATUSES: FrozenSet[SlotStatus] = frozenset({SlotStatus.BUSY, SlotStatus.SWAPPABLE})


def check_initial_status(status: SlotStatus) -> None:
    """Slots are created BUSY or SWAPPABLE, never already in a swap."""
    if status not in INITIAL_SLOT_STATUSES:
        raise InvalidOperationError(f"A new slot cannot start as {status.value}")


def check_owner_transition(current: SlotStatus, target: SlotStatus) -> None:
    """
    Validate a status change requested by the slot owner.

    Raises:
        InvalidOperationError: If the slot is locked in a swap or the target
            status is reserved for the engine
    """
    if current is SlotStatus.SWAP_PENDING:
        raise InvalidOperationError("Cannot edit a slot that is in a pending swap")
    if target not in OWNER_SLOT_TRANSITIONS[current]:
        raise InvalidOperationError(f"Cannot set slot status to {target.value}")


def check_engine_transition(current: SlotStatus, target: SlotStatus) -> None:
    """Validate a status change performed by the negotiation engine."""
    if target not in ENGINE_SLOT_TRANSITIONS[current]:
        raise InvalidOperationError(
            f"Illegal slot transition {current.value} -> {target.value}"
        )


def check_swap_transition(current: SwapStatus, target: SwapStatus) -> None:
    if target not in SWAP_TRANSITIONS[current]:
        raise InvalidOperationError("Swap request has already been processed")


def can_delete_slot(slot: Slot) -> bool:
    """A slot may be deleted unless it is locked in a pending swap."""
    return slot.status is not SlotStatus.SWAP_PENDING
