"""Settlement domain models."""

from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from .reservation import ReservationStatus


class SettlementStatus(str, Enum):
    """Settlement lifecycle status. Moves forward only."""

    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"
    LOCKED = "LOCKED"


class SettlementConfig(BaseModel):
    """Which reservations count toward a settlement and the platform's cut."""

    model_config = ConfigDict(frozen=True)

    commission_rate: Decimal = Field(default=Decimal("0.10"))
    include_no_show: bool = True
    include_cancelled: bool = True
    include_refunded: bool = True


class ExclusionReason(str, Enum):
    """Why a candidate reservation was left out of a settlement."""

    ALREADY_SETTLED = "ALREADY_SETTLED"
    STATUS_NOT_ELIGIBLE = "STATUS_NOT_ELIGIBLE"
    DUPLICATE_BOOKING = "DUPLICATE_BOOKING"


class SettlementLine(BaseModel):
    """One reservation's contribution to a settlement."""

    model_config = ConfigDict(frozen=True)

    reservation_id: str
    user_id: str
    tee_time_id: int
    tee_off: AwareDatetime
    status: ReservationStatus
    final_price: int
    refund_amount: int
    net_contribution: int
    is_imminent_deal: bool
    policy_version: str


class ExcludedReservation(BaseModel):
    """A candidate left out, with the reason."""

    model_config = ConfigDict(frozen=True)

    reservation_id: str
    tee_time_id: int
    reason: ExclusionReason
    settlement_id: Optional[str] = None


class SettlementTotals(BaseModel):
    """Aggregated amounts in minor currency units."""

    model_config = ConfigDict(frozen=True)

    gross_amount: int = 0
    refund_amount: int = 0
    net_amount: int = 0
    platform_fee: int = 0
    club_payout: int = 0


class SettlementPreview(BaseModel):
    """What a settlement would contain if created now."""

    golf_club_id: int
    period_start: AwareDatetime
    period_end: AwareDatetime
    config: SettlementConfig
    reservations: list[SettlementLine] = Field(default_factory=list)
    excluded: list[ExcludedReservation] = Field(default_factory=list)
    totals: SettlementTotals = Field(default_factory=SettlementTotals)
    breakdown_by_status: dict[ReservationStatus, int] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    validation_errors: list[str] = Field(default_factory=list)

    @property
    def included_count(self) -> int:
        return len(self.reservations)

    @property
    def already_settled_count(self) -> int:
        return sum(
            1 for item in self.excluded if item.reason == ExclusionReason.ALREADY_SETTLED
        )

    @property
    def can_create(self) -> bool:
        return (
            not self.validation_errors
            and self.included_count > 0
            and self.totals.net_amount > 0
        )


class Settlement(BaseModel):
    """A periodic financial close-out for one golf club."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    golf_club_id: int = Field(gt=0)
    period_start: AwareDatetime
    period_end: AwareDatetime
    status: SettlementStatus = SettlementStatus.DRAFT
    totals: SettlementTotals
    commission_rate: Decimal
    reservation_ids: tuple[str, ...] = ()
    notes: Optional[str] = None
    created_by: str
    created_at: AwareDatetime
    confirmed_by: Optional[str] = None
    confirmed_at: Optional[AwareDatetime] = None
    locked_by: Optional[str] = None
    locked_at: Optional[AwareDatetime] = None

    @property
    def can_confirm(self) -> bool:
        return self.status == SettlementStatus.DRAFT

    @property
    def can_lock(self) -> bool:
        return self.status == SettlementStatus.CONFIRMED

    @property
    def can_edit(self) -> bool:
        return self.status != SettlementStatus.LOCKED
