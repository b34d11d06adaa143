"""User snapshot and booking history models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field


class Segment(str, Enum):
    """Behavioral user segment used to modulate pricing."""

    FUTURE = "FUTURE"
    ACTIVE = "ACTIVE"
    VIP = "VIP"
    RISK = "RISK"


class UserSnapshot(BaseModel):
    """User state as read at the start of one operation.

    Segment and suspension live in the database; a snapshot never reflects
    writes made after it was read.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    segment: Segment = Segment.FUTURE
    is_suspended: bool = False
    suspended_reason: Optional[str] = None
    suspended_at: Optional[AwareDatetime] = None
    suspension_expires_at: Optional[AwareDatetime] = Field(
        default=None, description="None while suspended means permanent"
    )
    no_show_count: int = Field(default=0, ge=0)
    last_no_show_at: Optional[AwareDatetime] = None
    total_bookings: int = Field(default=0, ge=0)
    total_spent: int = Field(default=0, ge=0)

    def is_suspended_at(self, now: datetime) -> bool:
        """True if the user is suspended and the suspension has not expired."""
        if not self.is_suspended:
            return False
        if self.suspension_expires_at is None:
            return True
        return now < self.suspension_expires_at


class BookingHistory(BaseModel):
    """Aggregates the segment classifier works from."""

    total_bookings: int = Field(default=0, ge=0)
    no_show_count: int = Field(default=0, ge=0)
    cancellation_count: int = Field(default=0, ge=0)
    total_spent: int = Field(default=0, ge=0)

    @property
    def no_show_rate(self) -> float:
        if self.total_bookings == 0:
            return 0.0
        return self.no_show_count / self.total_bookings

    @classmethod
    def from_user(cls, user: UserSnapshot, cancellation_count: int = 0) -> "BookingHistory":
        return cls(
            total_bookings=user.total_bookings,
            no_show_count=user.no_show_count,
            cancellation_count=cancellation_count,
            total_spent=user.total_spent,
        )
