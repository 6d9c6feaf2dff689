"""
Slot management: owner-facing create, list, edit and delete.

Status changes into or out of SWAP_PENDING belong to the negotiation engine;
this service only performs the owner transitions and asks the engine's
delete guard before removing a slot.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from pendulum import DateTime

from ..domain.exceptions import ForbiddenError, InvalidOperationError, NotFoundError
from ..domain.models import Slot, SlotStatus, SlotView, coerce_status, new_id, utcnow
from ..domain.state_machine import (
    can_delete_slot,
    check_initial_status,
    check_owner_transition,
)
from .projections import SwapProjector
from .protocols import IdentityProviderProtocol, StoreTransactionProtocol, SwapStoreProtocol
from .swap_engine import require_id

logger = logging.getLogger(__name__)


class SlotService:
    """Create and maintain a user's own slots."""

    def __init__(
        self,
        store: SwapStoreProtocol,
        identity_provider: IdentityProviderProtocol,
        delete_guard: Callable[[Slot], bool] = can_delete_slot,
        clock: Callable[[], DateTime] = utcnow,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._store = store
        self._projector = SwapProjector(identity_provider)
        self._delete_guard = delete_guard
        self._clock = clock
        self._id_factory = id_factory

    def create_slot(
        self,
        owner_id: str,
        title: str,
        start: DateTime,
        end: DateTime,
        status: SlotStatus = SlotStatus.BUSY,
    ) -> Slot:
        """
        Publish a new slot for ``owner_id``.

        Raises:
            ValidationError: If the title is empty or end is not after start
            InvalidOperationError: If ``status`` is SWAP_PENDING
        """
        owner_id = require_id(owner_id, "owner_id")
        now = self._clock()
        slot = Slot(
            id=self._id_factory(),
            title=title,
            start=start,
            end=end,
            owner_id=owner_id,
            status=status,
            created_at=now,
            updated_at=now,
        )
        check_initial_status(slot.status)

        with self._store.transaction() as tx:
            tx.add_slot(slot)

        logger.info("Slot %s created by %s (%s)", slot.id, owner_id, slot.status.value)
        return slot

    def list_slots(self, owner_id: str) -> List[Slot]:
        """The owner's slots, earliest first."""
        owner_id = require_id(owner_id, "owner_id")
        with self._store.transaction() as tx:
            return tx.find_slots(owner_id=owner_id)

    def list_swappable_slots(self, user_id: str) -> List[SlotView]:
        """SWAPPABLE slots of every other user, earliest first."""
        user_id = require_id(user_id, "user_id")
        with self._store.transaction() as tx:
            slots = tx.find_slots(exclude_owner_id=user_id, status=SlotStatus.SWAPPABLE)
        return self._projector.slot_views(slots)

    def update_slot(
        self,
        slot_id: str,
        owner_id: str,
        *,
        title: Optional[str] = None,
        start: Optional[DateTime] = None,
        end: Optional[DateTime] = None,
        status: Optional[SlotStatus] = None,
    ) -> Slot:
        """
        Edit an owned slot. Only BUSY and SWAPPABLE slots are editable.

        Raises:
            NotFoundError: If the slot does not exist
            ForbiddenError: If the caller does not own it
            InvalidOperationError: If it is in a pending swap, or ``status``
                would move it into or out of SWAP_PENDING
            ValidationError: If the resulting slot is malformed
        """
        slot_id = require_id(slot_id, "slot_id")
        owner_id = require_id(owner_id, "owner_id")

        with self._store.transaction() as tx:
            slot = self._load_owned(tx, slot_id, owner_id, action="update")
            new_status = slot.status if status is None else coerce_status(SlotStatus, status)
            check_owner_transition(slot.status, new_status)
            updated = slot.with_details(
                self._clock(), title=title, start=start, end=end, status=new_status
            )
            tx.replace_slot(updated, expected_status=slot.status)

        logger.info("Slot %s updated by %s", slot_id, owner_id)
        return updated

    def delete_slot(self, slot_id: str, owner_id: str) -> None:
        """
        Delete an owned slot unless it is locked in a pending swap.

        Raises:
            NotFoundError: If the slot does not exist
            ForbiddenError: If the caller does not own it
            InvalidOperationError: If the delete guard refuses
        """
        slot_id = require_id(slot_id, "slot_id")
        owner_id = require_id(owner_id, "owner_id")

        with self._store.transaction() as tx:
            slot = self._load_owned(tx, slot_id, owner_id, action="delete")
            if not self._delete_guard(slot):
                raise InvalidOperationError("Cannot delete a slot that is in a pending swap")
            tx.delete_slot(slot_id, expected_status=slot.status)

        logger.info("Slot %s deleted by %s", slot_id, owner_id)

    @staticmethod
    def _load_owned(
        tx: StoreTransactionProtocol,
        slot_id: str,
        owner_id: str,
        *,
        action: str,
    ) -> Slot:
        slot = tx.get_slot(slot_id)
        if slot is None:
            raise NotFoundError("Slot not found")
        if slot.owner_id != owner_id:
            raise ForbiddenError(f"Not authorized to {action} this slot")
        return slot
