"""
Protocols describing the collaborators the services depend on.

The slot store and swap ledger are reached through a single unit-of-work
object so that the engine's multi-record writes commit or roll back together.
"""

from __future__ import annotations

from typing import ContextManager, List, Optional, Protocol

from ..domain.models import Slot, SlotStatus, SwapRequest, SwapStatus, UserProfile


class StoreTransactionProtocol(Protocol):
    """Reads and staged writes inside one atomic unit of work."""

    def get_slot(self, slot_id: str, *, for_update: bool = True) -> Optional[Slot]:
        """Return the slot, locking it for the rest of the transaction when ``for_update``."""

    def find_slots(
        self,
        *,
        owner_id: Optional[str] = None,
        exclude_owner_id: Optional[str] = None,
        status: Optional[SlotStatus] = None,
    ) -> List[Slot]:
        """Return matching slots ordered by start ascending."""

    def add_slot(self, slot: Slot) -> None:
        """Insert a new slot."""

    def replace_slot(self, slot: Slot, *, expected_status: SlotStatus) -> None:
        """
        Overwrite a slot if its stored status still equals ``expected_status``.

        Raises ConflictError when the slot is gone or its status moved on.
        """

    def delete_slot(self, slot_id: str, *, expected_status: SlotStatus) -> None:
        """Delete a slot under the same compare-and-set rule as ``replace_slot``."""

    def get_swap(self, swap_id: str, *, for_update: bool = True) -> Optional[SwapRequest]:
        """Return the swap request, locking it for the rest of the transaction."""

    def find_swaps(
        self,
        *,
        requester_id: Optional[str] = None,
        target_user_id: Optional[str] = None,
        status: Optional[SwapStatus] = None,
    ) -> List[SwapRequest]:
        """Return matching swap requests ordered newest-created first."""

    def add_swap(self, swap: SwapRequest) -> None:
        """Insert a new swap request."""

    def replace_swap(self, swap: SwapRequest, *, expected_status: SwapStatus) -> None:
        """Overwrite a swap request under compare-and-set on its status."""


class SwapStoreProtocol(Protocol):
    """Durable store holding both slots and swap requests."""

    def transaction(self) -> ContextManager[StoreTransactionProtocol]:
        """Open a unit of work; commit on clean exit, roll back on error."""


class IdentityProviderProtocol(Protocol):
    """Resolves opaque user ids to display data."""

    def resolve_user(self, user_id: str) -> Optional[UserProfile]:
        """Return the user's profile or None when unknown."""
