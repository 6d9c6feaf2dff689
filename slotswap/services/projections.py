"""
Read-side projections joining slots and swap requests with user profiles.

Built after a state change has been decided; nothing here is written back.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from ..domain.models import Slot, SlotView, SwapRequest, SwapRequestView, UserProfile
from .protocols import IdentityProviderProtocol, StoreTransactionProtocol


class SwapProjector:
    """Decorates domain records with resolved users for display."""

    def __init__(self, identity_provider: IdentityProviderProtocol) -> None:
        self._identity_provider = identity_provider

    def resolve(self, user_id: str) -> Optional[UserProfile]:
        return self._identity_provider.resolve_user(user_id)

    def swap_view(
        self,
        swap: SwapRequest,
        requester_slot: Optional[Slot],
        target_slot: Optional[Slot],
        *,
        include_requester: bool = True,
        include_target: bool = True,
    ) -> SwapRequestView:
        return SwapRequestView(
            request=swap,
            requester_slot=requester_slot,
            target_slot=target_slot,
            requester=self.resolve(swap.requester_id) if include_requester else None,
            target_user=self.resolve(swap.target_user_id) if include_target else None,
        )

    def swap_views(
        self,
        tx: StoreTransactionProtocol,
        swaps: Iterable[SwapRequest],
        *,
        include_requester: bool,
        include_target: bool,
    ) -> List[SwapRequestView]:
        """
        Build views for a batch of requests, loading each referenced slot once.

        User lookups are memoised per call since listings usually repeat the
        same counterpart.
        """
        slot_cache: Dict[str, Optional[Slot]] = {}
        user_cache: Dict[str, Optional[UserProfile]] = {}

        def slot(slot_id: str) -> Optional[Slot]:
            if slot_id not in slot_cache:
                slot_cache[slot_id] = tx.get_slot(slot_id, for_update=False)
            return slot_cache[slot_id]

        def user(user_id: str) -> Optional[UserProfile]:
            if user_id not in user_cache:
                user_cache[user_id] = self.resolve(user_id)
            return user_cache[user_id]

        return [
            SwapRequestView(
                request=swap,
                requester_slot=slot(swap.requester_slot_id),
                target_slot=slot(swap.target_slot_id),
                requester=user(swap.requester_id) if include_requester else None,
                target_user=user(swap.target_user_id) if include_target else None,
            )
            for swap in swaps
        ]

    def slot_views(self, slots: Iterable[Slot]) -> List[SlotView]:
        return [SlotView(slot=slot, owner=self.resolve(slot.owner_id)) for slot in slots]
