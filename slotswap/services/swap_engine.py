"""
Swap negotiation engine.

The engine validates and executes the slot and swap-request state
transitions. Each public operation runs its reads, precondition checks and
writes inside a single store transaction, and every status write is a
compare-and-set on the status it was checked against. Two callers racing
for the same slot therefore cannot both succeed: the loser either observes
the changed status or has its write rejected with ``ConflictError``.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from pendulum import DateTime

from ..domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from ..domain.models import (
    Slot,
    SlotStatus,
    SwapRequest,
    SwapRequestView,
    SwapStatus,
    new_id,
    utcnow,
)
from ..domain.state_machine import (
    can_delete_slot,
    check_engine_transition,
    check_swap_transition,
)
from .projections import SwapProjector
from .protocols import IdentityProviderProtocol, SwapStoreProtocol

logger = logging.getLogger(__name__)


def require_id(value: object, name: str) -> str:
    """Reject missing or non-string identifiers before touching the store."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value.strip()


class SwapNegotiationEngine:
    """
    Orchestrates pairwise slot swaps across the slot store and swap ledger.

    The engine holds no mutable state of its own; all coordination happens
    through the store's transaction boundary.
    """

    def __init__(
        self,
        store: SwapStoreProtocol,
        identity_provider: IdentityProviderProtocol,
        clock: Callable[[], DateTime] = utcnow,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._store = store
        self._projector = SwapProjector(identity_provider)
        self._clock = clock
        self._id_factory = id_factory

    def propose_swap(
        self,
        requester_id: str,
        offered_slot_id: str,
        target_slot_id: str,
    ) -> SwapRequestView:
        """
        Offer one of the requester's slots in exchange for another user's slot.

        Both slots are pinned to SWAP_PENDING immediately so neither can be
        offered into a second swap while this one is open.

        Raises:
            NotFoundError: If either slot does not exist
            ForbiddenError: If the requester does not own the offered slot
            InvalidOperationError: On a self-swap or a slot that is not SWAPPABLE
            ConflictError: If a concurrent writer changed either slot first
        """
        requester_id = require_id(requester_id, "requester_id")
        offered_slot_id = require_id(offered_slot_id, "offered_slot_id")
        target_slot_id = require_id(target_slot_id, "target_slot_id")

        with self._store.transaction() as tx:
            offered = tx.get_slot(offered_slot_id)
            target = tx.get_slot(target_slot_id)

            if offered is None or target is None:
                raise NotFoundError("One or both slots not found")
            if offered.owner_id != requester_id:
                raise ForbiddenError("You do not own the offered slot")
            if target.owner_id == requester_id:
                raise InvalidOperationError("Cannot swap with your own slot")
            if offered.status is not SlotStatus.SWAPPABLE:
                raise InvalidOperationError("Offered slot is not swappable")
            if target.status is not SlotStatus.SWAPPABLE:
                raise InvalidOperationError("Target slot is not available for swap")

            now = self._clock()
            swap = SwapRequest(
                id=self._id_factory(),
                requester_slot_id=offered.id,
                target_slot_id=target.id,
                requester_id=requester_id,
                target_user_id=target.owner_id,
                status=SwapStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            pinned_offered = self._transition(offered, SlotStatus.SWAP_PENDING, now)
            pinned_target = self._transition(target, SlotStatus.SWAP_PENDING, now)

            tx.add_swap(swap)
            tx.replace_slot(pinned_offered, expected_status=SlotStatus.SWAPPABLE)
            tx.replace_slot(pinned_target, expected_status=SlotStatus.SWAPPABLE)

        logger.info(
            "Swap %s proposed: %s offers slot %s for slot %s of %s",
            swap.id, requester_id, offered.id, target.id, target.owner_id,
        )
        return self._projector.swap_view(swap, pinned_offered, pinned_target)

    def list_incoming_requests(self, user_id: str) -> List[SwapRequestView]:
        """Pending requests addressed to the user, newest first."""
        user_id = require_id(user_id, "user_id")
        with self._store.transaction() as tx:
            swaps = tx.find_swaps(target_user_id=user_id, status=SwapStatus.PENDING)
            return self._projector.swap_views(
                tx, swaps, include_requester=True, include_target=False
            )

    def list_outgoing_requests(self, user_id: str) -> List[SwapRequestView]:
        """Every request the user has made, in any status, newest first."""
        user_id = require_id(user_id, "user_id")
        with self._store.transaction() as tx:
            swaps = tx.find_swaps(requester_id=user_id)
            return self._projector.swap_views(
                tx, swaps, include_requester=False, include_target=True
            )

    def respond_to_swap(
        self,
        request_id: str,
        responder_id: str,
        accepted: bool,
    ) -> SwapRequestView:
        """
        Accept or reject a pending swap request.

        Accepting exchanges the owners of the two slots and marks both BUSY;
        rejecting returns both slots to SWAPPABLE. Either way the request
        reaches a terminal status and can never be answered again.

        Raises:
            ValidationError: If ``accepted`` is not a boolean
            NotFoundError: If the request does not exist
            ForbiddenError: If the responder is not the request's target user
            InvalidOperationError: If the request was already processed
            ConflictError: If either slot was deleted or changed out-of-band
        """
        request_id = require_id(request_id, "request_id")
        responder_id = require_id(responder_id, "responder_id")
        if not isinstance(accepted, bool):
            raise ValidationError("accepted must be a boolean")

        with self._store.transaction() as tx:
            swap = tx.get_swap(request_id)
            if swap is None:
                raise NotFoundError("Swap request not found")
            if swap.target_user_id != responder_id:
                raise ForbiddenError("Not authorized to respond to this swap")
            target_status = SwapStatus.ACCEPTED if accepted else SwapStatus.REJECTED
            check_swap_transition(swap.status, target_status)

            requester_slot = tx.get_slot(swap.requester_slot_id)
            target_slot = tx.get_slot(swap.target_slot_id)
            self._ensure_still_linked(swap, requester_slot, target_slot)

            now = self._clock()
            resolved = swap.resolve(target_status, now)

            if accepted:
                new_requester_slot = self._transition(
                    requester_slot, SlotStatus.BUSY, now, owner_id=swap.target_user_id
                )
                new_target_slot = self._transition(
                    target_slot, SlotStatus.BUSY, now, owner_id=swap.requester_id
                )
            else:
                new_requester_slot = self._transition(requester_slot, SlotStatus.SWAPPABLE, now)
                new_target_slot = self._transition(target_slot, SlotStatus.SWAPPABLE, now)

            tx.replace_swap(resolved, expected_status=SwapStatus.PENDING)
            tx.replace_slot(new_requester_slot, expected_status=SlotStatus.SWAP_PENDING)
            tx.replace_slot(new_target_slot, expected_status=SlotStatus.SWAP_PENDING)

        logger.info("Swap %s %s by %s", resolved.id, resolved.status.value.lower(), responder_id)
        return self._projector.swap_view(resolved, new_requester_slot, new_target_slot)

    @staticmethod
    def can_delete_slot(slot: Slot) -> bool:
        """Delete guard consulted by the slot management service."""
        return can_delete_slot(slot)

    @staticmethod
    def _transition(
        slot: Slot,
        status: SlotStatus,
        now: DateTime,
        owner_id: Optional[str] = None,
    ) -> Slot:
        check_engine_transition(slot.status, status)
        if owner_id is None:
            return slot.with_status(status, now)
        return slot.with_owner(owner_id, status, now)

    @staticmethod
    def _ensure_still_linked(
        swap: SwapRequest,
        requester_slot: Optional[Slot],
        target_slot: Optional[Slot],
    ) -> None:
        """
        Fail closed when either slot no longer matches what was proposed.

        Both slots must still exist, still be pinned to SWAP_PENDING and still
        belong to the parties recorded on the request.
        """
        if requester_slot is None or target_slot is None:
            logger.warning("Swap %s references a slot that no longer exists", swap.id)
            raise ConflictError("A slot in this swap no longer exists")

        expected = (
            (requester_slot, swap.requester_id),
            (target_slot, swap.target_user_id),
        )
        for slot, owner_id in expected:
            if slot.status is not SlotStatus.SWAP_PENDING or slot.owner_id != owner_id:
                logger.warning(
                    "Swap %s: slot %s drifted (status=%s, owner=%s)",
                    swap.id, slot.id, slot.status.value, slot.owner_id,
                )
                raise ConflictError("A slot in this swap was modified since it was proposed")
