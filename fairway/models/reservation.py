"""Reservation domain model."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator

from .pricing import PricingFactor


class ReservationStatus(str, Enum):
    """Reservation lifecycle status.

    PENDING -> PAID -> {CANCELLED, NO_SHOW, COMPLETED}. REFUNDED is the
    sub-state of CANCELLED reached once the refund leg completes.
    """

    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    NO_SHOW = "NO_SHOW"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, Enum):
    """Payment leg status, tracked separately from the reservation lifecycle."""

    PENDING = "PENDING"
    PAID = "PAID"
    REFUND_PENDING = "REFUND_PENDING"
    REFUNDED = "REFUNDED"
    REFUND_FAILED = "REFUND_FAILED"


class CancelReason(str, Enum):
    """Why a reservation stopped being PAID."""

    USER_REQUEST = "USER_REQUEST"
    WEATHER = "WEATHER"
    NO_SHOW = "NO_SHOW"
    ADMIN_CANCEL = "ADMIN_CANCEL"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReservationRecord(BaseModel):
    """A booked tee time and everything that happened to it afterwards."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str = Field(min_length=1)
    tee_time_id: int = Field(gt=0)
    golf_club_id: int = Field(gt=0)
    tee_off: AwareDatetime = Field(description="Denormalized from the tee time")
    final_price: int = Field(ge=0)
    discount_breakdown: tuple[PricingFactor, ...] = ()
    payment_status: PaymentStatus = PaymentStatus.PAID
    payment_key: Optional[str] = None
    status: ReservationStatus = ReservationStatus.PAID
    cancel_reason: Optional[CancelReason] = None
    cancelled_at: Optional[AwareDatetime] = None
    refund_amount: int = Field(default=0, ge=0)
    no_show_marked_at: Optional[AwareDatetime] = None
    policy_version: str = "STANDARD_V2"
    is_imminent_deal: bool = False
    settlement_id: Optional[str] = None
    created_at: AwareDatetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def validate_refund(self) -> "ReservationRecord":
        """Refunds never exceed the price paid and imminent deals never refund."""
        if self.refund_amount > self.final_price:
            raise ValueError(
                f"refund_amount {self.refund_amount} exceeds final_price {self.final_price}"
            )
        if self.is_imminent_deal and self.refund_amount != 0:
            raise ValueError("imminent deal reservations cannot carry a refund")
        return self

    def evolve(self, **changes) -> "ReservationRecord":
        """Return a validated copy with ``changes`` applied."""
        return type(self).model_validate({**self.model_dump(), **changes})

    @property
    def net_contribution(self) -> int:
        return self.final_price - self.refund_amount

    @property
    def is_settled(self) -> bool:
        return self.settlement_id is not None

    def hours_until_tee_off(self, now: datetime) -> float:
        return (self.tee_off - now).total_seconds() / 3600
