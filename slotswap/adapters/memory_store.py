"""
In-process store for slots and swap requests.

Useful for tests and throwaway sessions. Transactions are serialized by a
store-wide lock and stage their writes on private copies of the tables,
which are published only on a clean exit.
"""

from __future__ import annotations

import itertools
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from ..domain.exceptions import ConflictError, ValidationError
from ..domain.models import Slot, SlotStatus, SwapRequest, SwapStatus

logger = logging.getLogger(__name__)


class MemoryTransaction:
    """A unit of work against a :class:`MemorySwapStore`."""

    def __init__(self, store: "MemorySwapStore") -> None:
        self._store = store
        self.slots: Dict[str, Slot] = dict(store._slots)
        self.swaps: Dict[str, Tuple[int, SwapRequest]] = dict(store._swaps)
        self.writes = 0

    def get_slot(self, slot_id: str, *, for_update: bool = True) -> Optional[Slot]:
        return self.slots.get(slot_id)

    def find_slots(
        self,
        *,
        owner_id: Optional[str] = None,
        exclude_owner_id: Optional[str] = None,
        status: Optional[SlotStatus] = None,
    ) -> List[Slot]:
        matches = [
            slot for slot in self.slots.values()
            if (owner_id is None or slot.owner_id == owner_id)
            and (exclude_owner_id is None or slot.owner_id != exclude_owner_id)
            and (status is None or slot.status is status)
        ]
        return sorted(matches, key=lambda slot: slot.start)

    def add_slot(self, slot: Slot) -> None:
        if slot.id in self.slots:
            raise ValidationError(f"Slot {slot.id} already exists")
        self.slots[slot.id] = slot
        self.writes += 1

    def replace_slot(self, slot: Slot, *, expected_status: SlotStatus) -> None:
        self._check_slot(slot.id, expected_status)
        self.slots[slot.id] = slot
        self.writes += 1

    def delete_slot(self, slot_id: str, *, expected_status: SlotStatus) -> None:
        self._check_slot(slot_id, expected_status)
        del self.slots[slot_id]
        self.writes += 1

    def get_swap(self, swap_id: str, *, for_update: bool = True) -> Optional[SwapRequest]:
        entry = self.swaps.get(swap_id)
        return entry[1] if entry else None

    def find_swaps(
        self,
        *,
        requester_id: Optional[str] = None,
        target_user_id: Optional[str] = None,
        status: Optional[SwapStatus] = None,
    ) -> List[SwapRequest]:
        matches = [
            entry for entry in self.swaps.values()
            if (requester_id is None or entry[1].requester_id == requester_id)
            and (target_user_id is None or entry[1].target_user_id == target_user_id)
            and (status is None or entry[1].status is status)
        ]
        # Newest first; insertion order breaks ties between equal timestamps
        matches.sort(key=lambda entry: (entry[1].created_at, entry[0]), reverse=True)
        return [swap for _, swap in matches]

    def add_swap(self, swap: SwapRequest) -> None:
        if swap.id in self.swaps:
            raise ValidationError(f"Swap request {swap.id} already exists")
        self.swaps[swap.id] = (next(self._store._sequence), swap)
        self.writes += 1

    def replace_swap(self, swap: SwapRequest, *, expected_status: SwapStatus) -> None:
        current = self.get_swap(swap.id)
        if current is None or current.status is not expected_status:
            raise ConflictError(f"Swap request {swap.id} changed concurrently")
        self.swaps[swap.id] = (self.swaps[swap.id][0], swap)
        self.writes += 1

    def _check_slot(self, slot_id: str, expected_status: SlotStatus) -> None:
        current = self.slots.get(slot_id)
        if current is None or current.status is not expected_status:
            logger.debug(
                "Compare-and-set failed for slot %s: expected %s, found %s",
                slot_id, expected_status.value, current.status.value if current else None,
            )
            raise ConflictError(f"Slot {slot_id} changed concurrently")


class MemorySwapStore:
    """
    Thread-safe in-memory implementation of ``SwapStoreProtocol``.

    ``write_count`` tracks the number of committed record writes, which makes
    "no additional writes" assertions straightforward in tests.
    """

    transaction_class = MemoryTransaction

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._slots: Dict[str, Slot] = {}
        self._swaps: Dict[str, Tuple[int, SwapRequest]] = {}
        self._sequence = itertools.count()
        self.write_count = 0

    @contextmanager
    def transaction(self) -> Iterator[MemoryTransaction]:
        with self._lock:
            tx = self.transaction_class(self)
            yield tx
            # Reached only when the body raised nothing
            self._slots = tx.slots
            self._swaps = tx.swaps
            self.write_count += tx.writes

    def create_schema(self) -> None:
        """Nothing to create; present for parity with the SQL store."""
