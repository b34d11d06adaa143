"""Dynamic pricing engine for tee times.

The final price is a left-to-right fold of the base price through an
ordered list of factors:

1. Time decay (steeper as tee-off approaches, imminent deal at the end)
2. Weather (rain or cloud cover makes the round worth less)
3. Location (players living near the club)
4. Segment (loyalty discount, surcharge for no-show risk)
5. Cap (total discount never exceeds the governance limit)
6. Rounding (to the nearest listed price unit)
7. Floor (never below the minimum price)

Every percentage is taken from the base price, so the layers do not
compound. Blocking never short-circuits the computation: a blocked
tee time still gets a price for display, and the caller refuses the booking.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fairway.models.pricing import (
    DEFAULT_PRICING_RULES,
    BlockReason,
    FactorKind,
    PricingContext,
    PricingFactor,
    PricingResult,
    PricingRules,
    TimeTier,
)
from fairway.models.tee_time import SkyCondition, WeatherSnapshot
from fairway.models.user import Segment, UserSnapshot
from fairway.money import percent_of, round_to_nearest


def _fmt_rate(rate: Decimal) -> str:
    return f"{abs(rate) * 100:.0f}%"


class PricingEngine:
    """Computes final prices from tee-time, user and weather snapshots."""

    def __init__(self, rules: PricingRules = DEFAULT_PRICING_RULES):
        """Initialize pricing engine."""
        self.rules = rules

    def calculate_pricing(self, context: PricingContext) -> PricingResult:
        """Price one tee time for one (optional) user at ``context.now``."""
        tee_time = context.tee_time
        base_price = tee_time.base_price
        hours_to_tee_off = (tee_time.tee_off - context.now).total_seconds() / 3600
        segment = context.user.segment if context.user else Segment.FUTURE

        factors: list[PricingFactor] = []

        tier = self.time_tier(hours_to_tee_off)
        if tier is not None:
            self._append(
                factors,
                FactorKind.TIME,
                f"{tier.label} ({_fmt_rate(tier.rate)})",
                -percent_of(base_price, tier.rate),
            )

        if tee_time.weather is not None:
            weather_rate, weather_label = self.weather_rate(tee_time.weather)
            if weather_rate:
                self._append(
                    factors,
                    FactorKind.WEATHER,
                    f"{weather_label} ({_fmt_rate(weather_rate)})",
                    -percent_of(base_price, weather_rate),
                )

        if (
            context.distance_km is not None
            and context.distance_km <= self.rules.nearby_radius_km
        ):
            self._append(
                factors,
                FactorKind.LOCATION,
                f"Nearby resident ({_fmt_rate(self.rules.nearby_rate)})",
                -percent_of(base_price, self.rules.nearby_rate),
            )

        segment_rate = self.rules.segment_rates.get(segment, Decimal("0"))
        if segment_rate:
            label = "member discount" if segment_rate > 0 else "risk surcharge"
            self._append(
                factors,
                FactorKind.SEGMENT,
                f"{segment.value} {label} ({_fmt_rate(segment_rate)})",
                -percent_of(base_price, segment_rate),
            )

        # Cap the accumulated discount
        discount = -sum(factor.amount_delta for factor in factors)
        max_discount = percent_of(base_price, self.rules.max_discount_rate)
        if discount > max_discount:
            self._append(
                factors,
                FactorKind.CAP,
                f"Maximum discount cap ({_fmt_rate(self.rules.max_discount_rate)})",
                discount - max_discount,
            )

        # A listed price with no adjustments stays exactly as listed
        price = base_price + sum(factor.amount_delta for factor in factors)
        if factors:
            rounded = round_to_nearest(price, self.rules.round_to)
            self._append(
                factors,
                FactorKind.ROUNDING,
                f"Rounded to nearest {self.rules.round_to}",
                rounded - price,
            )
            price = rounded

        if price < self.rules.min_price:
            self._append(
                factors,
                FactorKind.FLOOR,
                f"Minimum price {self.rules.min_price}",
                self.rules.min_price - price,
            )
            price = self.rules.min_price

        block_reason, block_message = self.block_decision(
            context.user, tee_time.weather, context.now
        )

        return PricingResult(
            base_price=base_price,
            final_price=price,
            factors=tuple(factors),
            is_blocked=block_reason is not None,
            block_reason=block_reason,
            block_message=block_message,
            is_imminent_deal=tier is not None and tier.imminent,
            hours_to_tee_off=hours_to_tee_off,
            segment=segment,
        )

    def time_tier(self, hours_to_tee_off: float) -> Optional[TimeTier]:
        """Steepest tier whose window contains ``hours_to_tee_off``.

        A tee time already in the past falls into the steepest tier.
        """
        for tier in self.rules.time_tiers:
            if hours_to_tee_off < tier.within_hours:
                return tier
        return None

    def weather_rate(self, weather: WeatherSnapshot) -> tuple[Decimal, str]:
        """Discount rate and label for a forecast."""
        rules = self.rules
        if (
            weather.sky == SkyCondition.RAIN
            or weather.rain_probability >= rules.rain_probability_threshold
        ):
            return rules.rain_rate, f"Rain forecast {weather.rain_probability}%"
        if (
            weather.sky == SkyCondition.CLOUDY
            or weather.rain_probability >= rules.cloudy_probability_threshold
        ):
            return rules.cloudy_rate, f"Cloudy skies {weather.rain_probability}%"
        return Decimal("0"), "Clear"

    def block_decision(
        self,
        user: Optional[UserSnapshot],
        weather: Optional[WeatherSnapshot],
        now: datetime,
    ) -> tuple[Optional[BlockReason], Optional[str]]:
        """Return (reason, message) if the tee time must not be booked."""
        if user is not None and user.is_suspended_at(now):
            reason = user.suspended_reason or "account suspended"
            if user.suspension_expires_at is None:
                return BlockReason.USER_SUSPENDED, f"Booking restricted ({reason}), permanent"
            return (
                BlockReason.USER_SUSPENDED,
                f"Booking restricted ({reason}) until "
                f"{user.suspension_expires_at.isoformat()}",
            )

        if (
            weather is not None
            and weather.rainfall_mm is not None
            and weather.rainfall_mm >= self.rules.storm_rainfall_mm
        ):
            return (
                BlockReason.WEATHER_STORM,
                f"Heavy rain forecast ({weather.rainfall_mm}mm), tee time closed",
            )

        return None, None

    @staticmethod
    def _append(
        factors: list[PricingFactor], kind: FactorKind, description: str, delta: int
    ) -> None:
        if delta:
            factors.append(
                PricingFactor(kind=kind, description=description, amount_delta=delta)
            )


def calculate_pricing(
    context: PricingContext, rules: PricingRules = DEFAULT_PRICING_RULES
) -> PricingResult:
    """Price a tee time with the given rules."""
    return PricingEngine(rules).calculate_pricing(context)
