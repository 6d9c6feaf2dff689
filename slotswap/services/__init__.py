"""
Service layer helpers that orchestrate the store adapters and domain logic.
"""

from .protocols import IdentityProviderProtocol, StoreTransactionProtocol, SwapStoreProtocol
from .slot_service import SlotService
from .swap_engine import SwapNegotiationEngine

__all__ = [
    "IdentityProviderProtocol",
    "StoreTransactionProtocol",
    "SwapStoreProtocol",
    "SlotService",
    "SwapNegotiationEngine",
]
