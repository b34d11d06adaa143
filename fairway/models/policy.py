"""Cancellation policy configuration and decision records."""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .reservation import ReservationRecord
from .user import UserSnapshot


class PolicyVersion(str, Enum):
    """Known cancellation policy versions."""

    STANDARD_V2 = "STANDARD_V2"


class RefundTier(BaseModel):
    """Refund share granted when at least ``min_hours_before`` remain."""

    model_config = ConfigDict(frozen=True)

    min_hours_before: float
    refund_rate: Decimal = Field(ge=0, le=1)


class SuspensionRule(BaseModel):
    """Suspend once a user's no-show count reaches ``min_no_shows``.

    ``duration_days`` of None means a permanent suspension.
    """

    model_config = ConfigDict(frozen=True)

    min_no_shows: int = Field(gt=0)
    duration_days: Optional[int] = Field(default=None, gt=0)


class CancellationPolicyConfig(BaseModel):
    """A named, versioned cancellation and no-show policy."""

    model_config = ConfigDict(frozen=True)

    version: PolicyVersion
    cancel_cutoff_hours: int = Field(default=24, ge=0)
    refund_tiers: tuple[RefundTier, ...] = ()
    no_show_grace_minutes: int = Field(default=30, ge=0)
    imminent_deal_cancellable: bool = False
    suspension_rules: tuple[SuspensionRule, ...] = ()

    @field_validator("refund_tiers")
    @classmethod
    def sort_refund_tiers(cls, v: tuple[RefundTier, ...]) -> tuple[RefundTier, ...]:
        """Most generous tier (furthest from tee-off) first."""
        return tuple(sorted(v, key=lambda tier: tier.min_hours_before, reverse=True))

    @field_validator("suspension_rules")
    @classmethod
    def sort_suspension_rules(
        cls, v: tuple[SuspensionRule, ...]
    ) -> tuple[SuspensionRule, ...]:
        """Harshest rule (highest count) first."""
        return tuple(sorted(v, key=lambda rule: rule.min_no_shows, reverse=True))

    @model_validator(mode="after")
    def validate_refund_reaches_cutoff(self) -> "CancellationPolicyConfig":
        """Every cancellation the cutoff allows must fall into some refund tier."""
        if self.refund_tiers and self.refund_tiers[-1].min_hours_before > self.cancel_cutoff_hours:
            raise ValueError(
                f"lowest refund tier ({self.refund_tiers[-1].min_hours_before}h) "
                f"is above the cancellation cutoff ({self.cancel_cutoff_hours}h)"
            )
        return self


class CancellationCheck(BaseModel):
    """Eligibility decision for a cancellation request."""

    can_cancel: bool
    reason: str
    hours_left: Optional[float] = None


class CancellationResult(BaseModel):
    """Outcome of a cancellation request."""

    success: bool
    message: str
    refund_amount: int = 0
    reservation: Optional[ReservationRecord] = None


class NoShowResult(BaseModel):
    """Outcome of a no-show marking."""

    success: bool
    message: str
    user_suspended: bool = False
    reservation: Optional[ReservationRecord] = None
    user: Optional[UserSnapshot] = None


class BookingCheck(BaseModel):
    """Whether a user may book right now."""

    can_book: bool
    reason: str
    suspension_lifted: bool = False


class CancellationInfo(BaseModel):
    """Display badge for a reservation's cancellation terms."""

    can_cancel: bool
    badge: str
    description: str


class RefundOutcome(BaseModel):
    """Result reported by the payment gateway for one refund."""

    success: bool
    message: str = ""
    refund_id: Optional[str] = None
    processed_at: Optional[AwareDatetime] = None
