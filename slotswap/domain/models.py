"""
Domain models for slots, swap requests and their display projections.
"""

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

import pendulum
from pendulum import DateTime

from .exceptions import ValidationError


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid.uuid4().hex


def utcnow() -> DateTime:
    """Current instant in UTC."""
    return pendulum.now("UTC")


class SlotStatus(str, Enum):
    """Lifecycle states of a slot."""
    BUSY = "BUSY"
    SWAPPABLE = "SWAPPABLE"
    SWAP_PENDING = "SWAP_PENDING"


class SwapStatus(str, Enum):
    """Lifecycle states of a swap request."""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


def coerce_status(enum_type, value):
    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValidationError(f"Invalid status {value!r}; expected one of {allowed}") from exc


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start and end are timezone-aware instants and start is before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        for label, value in (("Start", self.start), ("End", self.end)):
            if not isinstance(value, datetime):
                raise ValidationError(f"{label} time must be a datetime, got {value!r}")
            if value.tzinfo is None or value.utcoffset() is None:
                raise ValidationError(f"{label} time {value} has no timezone")
        if self.start >= self.end:
            raise ValidationError(f"End time {self.end} must be after start time {self.start}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def format_in(self, timezone: str) -> str:
        """Format the range for display in the given timezone."""
        start = self.start.in_timezone(timezone)
        end = self.end.in_timezone(timezone)
        if start.date() == end.date():
            return f"{start.format('DD.MM.YYYY HH:mm')} - {end.format('HH:mm')}"
        return f"{start.format('DD.MM.YYYY HH:mm')} - {end.format('DD.MM.YYYY HH:mm')}"


@dataclass(frozen=True)
class Slot:
    """
    A bookable interval owned by a user.

    Slots are immutable values; every change produces a new instance via
    the ``with_*`` helpers so stores can stage writes without aliasing.
    """
    id: str
    title: str
    start: DateTime
    end: DateTime
    owner_id: str
    status: SlotStatus = SlotStatus.BUSY
    created_at: Optional[DateTime] = None
    updated_at: Optional[DateTime] = None

    def __post_init__(self):
        if not self.id:
            raise ValidationError("Slot id is required")
        if not self.owner_id:
            raise ValidationError("Slot owner is required")
        if not isinstance(self.title, str) or not self.title.strip():
            raise ValidationError("Title is required")
        # Raises ValidationError when end <= start
        TimeRange(start=self.start, end=self.end)
        object.__setattr__(self, "title", self.title.strip())
        object.__setattr__(self, "status", coerce_status(SlotStatus, self.status))

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    def with_status(self, status: SlotStatus, now: DateTime) -> "Slot":
        return replace(self, status=status, updated_at=now)

    def with_owner(self, owner_id: str, status: SlotStatus, now: DateTime) -> "Slot":
        return replace(self, owner_id=owner_id, status=status, updated_at=now)

    def with_details(
        self,
        now: DateTime,
        title: Optional[str] = None,
        start: Optional[DateTime] = None,
        end: Optional[DateTime] = None,
        status: Optional[SlotStatus] = None,
    ) -> "Slot":
        """Return a copy with the given owner-editable fields changed."""
        return replace(
            self,
            title=self.title if title is None else title,
            start=self.start if start is None else start,
            end=self.end if end is None else end,
            status=self.status if status is None else status,
            updated_at=now,
        )


@dataclass(frozen=True)
class SwapRequest:
    """
    A proposal to exchange two slots between their owners.

    Invariant: requester and target user differ.
    """
    id: str
    requester_slot_id: str
    target_slot_id: str
    requester_id: str
    target_user_id: str
    status: SwapStatus = SwapStatus.PENDING
    created_at: Optional[DateTime] = None
    updated_at: Optional[DateTime] = None

    def __post_init__(self):
        for field_name in ("id", "requester_slot_id", "target_slot_id", "requester_id", "target_user_id"):
            if not getattr(self, field_name):
                raise ValidationError(f"{field_name} is required")
        if self.requester_id == self.target_user_id:
            raise ValidationError("Requester and target user must differ")
        object.__setattr__(self, "status", coerce_status(SwapStatus, self.status))

    @property
    def is_pending(self) -> bool:
        return self.status is SwapStatus.PENDING

    def resolve(self, status: SwapStatus, now: DateTime) -> "SwapRequest":
        """Return the request moved to ``status``; callers validate the transition."""
        return replace(self, status=status, updated_at=now)


@dataclass(frozen=True)
class UserProfile:
    """Display data for a user, as returned by the identity provider."""
    id: str
    name: str
    email: str


@dataclass(frozen=True)
class SlotView:
    """A slot joined with its owner's profile."""
    slot: Slot
    owner: Optional[UserProfile] = None


@dataclass(frozen=True)
class SwapRequestView:
    """
    Read-side projection of a swap request.

    Slots are None when a referenced record can no longer be loaded; user
    profiles are None when not requested or not resolvable.
    """
    request: SwapRequest
    requester_slot: Optional[Slot]
    target_slot: Optional[Slot]
    requester: Optional[UserProfile] = None
    target_user: Optional[UserProfile] = None

    @property
    def id(self) -> str:
        return self.request.id

    @property
    def status(self) -> SwapStatus:
        return self.request.status
