"""Pricing rule, context and result models."""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator

from .tee_time import TeeTimeSnapshot
from .user import Segment, UserSnapshot


class FactorKind(str, Enum):
    """Pricing layer that produced a factor."""

    TIME = "TIME"
    WEATHER = "WEATHER"
    LOCATION = "LOCATION"
    SEGMENT = "SEGMENT"
    CAP = "CAP"
    ROUNDING = "ROUNDING"
    FLOOR = "FLOOR"


class BlockReason(str, Enum):
    """Why a tee time cannot be booked."""

    USER_SUSPENDED = "USER_SUSPENDED"
    WEATHER_STORM = "WEATHER_STORM"


class PricingFactor(BaseModel):
    """One applied discount or surcharge (negative delta = cheaper)."""

    model_config = ConfigDict(frozen=True)

    kind: FactorKind
    description: str
    amount_delta: int


class TimeTier(BaseModel):
    """Discount applied when fewer than ``within_hours`` remain before tee-off."""

    model_config = ConfigDict(frozen=True)

    within_hours: float = Field(gt=0)
    rate: Decimal = Field(ge=0, le=1)
    label: str
    imminent: bool = False


class PricingRules(BaseModel):
    """Every threshold and rate the pricing engine uses."""

    model_config = ConfigDict(frozen=True)

    time_tiers: tuple[TimeTier, ...]

    rain_rate: Decimal = Decimal("0.20")
    rain_probability_threshold: int = 60
    cloudy_rate: Decimal = Decimal("0.10")
    cloudy_probability_threshold: int = 30
    storm_rainfall_mm: float = 10.0

    nearby_radius_km: float = 15.0
    nearby_rate: Decimal = Decimal("0.10")

    segment_rates: dict[Segment, Decimal] = Field(
        default_factory=lambda: {
            Segment.FUTURE: Decimal("0"),
            Segment.ACTIVE: Decimal("0.03"),
            Segment.VIP: Decimal("0.05"),
            Segment.RISK: Decimal("-0.03"),
        }
    )

    max_discount_rate: Decimal = Field(default=Decimal("0.40"), ge=0, le=1)
    round_to: int = Field(default=100, gt=0)
    min_price: int = Field(default=0, ge=0)

    @field_validator("time_tiers")
    @classmethod
    def validate_tiers(cls, v: tuple[TimeTier, ...]) -> tuple[TimeTier, ...]:
        """Sort tiers nearest-first and require discounts to grow toward tee-off."""
        ordered = tuple(sorted(v, key=lambda tier: tier.within_hours))
        for closer, farther in zip(ordered, ordered[1:]):
            if closer.rate < farther.rate:
                raise ValueError(
                    f"tier within {closer.within_hours}h discounts less than tier "
                    f"within {farther.within_hours}h"
                )
        return ordered


DEFAULT_PRICING_RULES = PricingRules(
    time_tiers=(
        TimeTier(within_hours=24, rate=Decimal("0.05"), label="Same-day deal"),
        TimeTier(within_hours=12, rate=Decimal("0.10"), label="Half-day deal"),
        TimeTier(within_hours=6, rate=Decimal("0.15"), label="Last-call deal"),
        TimeTier(within_hours=3, rate=Decimal("0.20"), label="Imminent deal", imminent=True),
    ),
)


class PricingContext(BaseModel):
    """Everything one pricing decision needs."""

    model_config = ConfigDict(frozen=True)

    tee_time: TeeTimeSnapshot
    now: AwareDatetime
    user: Optional[UserSnapshot] = None
    distance_km: Optional[float] = Field(default=None, ge=0)


class PricingResult(BaseModel):
    """Final price with the ordered factors that produced it."""

    model_config = ConfigDict(frozen=True)

    base_price: int
    final_price: int
    factors: tuple[PricingFactor, ...] = ()
    is_blocked: bool = False
    block_reason: Optional[BlockReason] = None
    block_message: Optional[str] = None
    is_imminent_deal: bool = False
    hours_to_tee_off: float
    segment: Segment = Segment.FUTURE

    @property
    def total_adjustment(self) -> int:
        return sum(factor.amount_delta for factor in self.factors)

    @property
    def discount_rate(self) -> float:
        """Effective discount as a fraction of base price."""
        return (self.base_price - self.final_price) / self.base_price
