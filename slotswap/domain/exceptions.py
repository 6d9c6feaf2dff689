"""
Domain-specific exception hierarchy for the slot swap application.
"""


class SlotSwapError(Exception):
    """Base class for all application-level errors."""


class NotFoundError(SlotSwapError):
    """Raised when a referenced slot or swap request does not exist."""


class ForbiddenError(SlotSwapError):
    """Raised when the caller does not own the record they act on."""


class InvalidOperationError(SlotSwapError):
    """Raised when a state-machine precondition is violated."""


class ConflictError(SlotSwapError):
    """Raised when a concurrent mutation invalidated an in-flight operation."""


class ValidationError(SlotSwapError, ValueError):
    """Raised for malformed input such as a missing id or an empty title."""


class SystemFailureError(SlotSwapError):
    """Raised when the underlying store is unavailable."""
