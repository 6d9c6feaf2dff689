"""
Domain layer - Pure business logic without external dependencies.
"""

from .exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
    SlotSwapError,
    SystemFailureError,
    ValidationError,
)
from .models import (
    Slot,
    SlotStatus,
    SlotView,
    SwapRequest,
    SwapRequestView,
    SwapStatus,
    TimeRange,
    UserProfile,
)
from .state_machine import can_delete_slot

__all__ = [
    "ConflictError",
    "ForbiddenError",
    "InvalidOperationError",
    "NotFoundError",
    "SlotSwapError",
    "SystemFailureError",
    "ValidationError",
    "Slot",
    "SlotStatus",
    "SlotView",
    "SwapRequest",
    "SwapRequestView",
    "SwapStatus",
    "TimeRange",
    "UserProfile",
    "can_delete_slot",
]
