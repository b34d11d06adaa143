"""Unit tests for the dynamic pricing engine.

Covers the factor fold order, the discount cap, rounding, blocking and
the price properties that must hold for every input.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from fairway.models import (
    DEFAULT_PRICING_RULES,
    BlockReason,
    FactorKind,
    PricingContext,
    ReservationRecord,
    Segment,
    SkyCondition,
    TeeTimeSnapshot,
    UserSnapshot,
    WeatherSnapshot,
)
from fairway.services.cancellation_policy import can_cancel, resolve_policy
from fairway.services.pricing_engine import PricingEngine, calculate_pricing


def _tee_time(now, hours, base_price=100_000, weather=None):
    return TeeTimeSnapshot(
        id=1,
        golf_club_id=7,
        tee_off=now + timedelta(hours=hours),
        base_price=base_price,
        weather=weather,
    )


def test_no_effects_keeps_base_price(now):
    """Test that a far-out tee time with no discounts keeps its exact price."""
    result = calculate_pricing(PricingContext(tee_time=_tee_time(now, 50, 123_456), now=now))

    assert result.final_price == 123_456
    assert result.factors == ()
    assert result.is_imminent_deal is False
    assert result.is_blocked is False


def test_fifty_hours_out_is_full_price(now):
    """Test base 100,000 at 50 hours before tee-off."""
    result = calculate_pricing(PricingContext(tee_time=_tee_time(now, 50), now=now))

    assert result.final_price == 100_000


def test_imminent_rain_deal_cannot_be_cancelled(now):
    """Test base 100,000 two hours out in heavy rain probability."""
    weather = WeatherSnapshot(sky=SkyCondition.RAIN, rain_probability=90)
    tee_time = _tee_time(now, 2, weather=weather)

    result = calculate_pricing(PricingContext(tee_time=tee_time, now=now))

    kinds = [factor.kind for factor in result.factors]
    assert kinds == [FactorKind.TIME, FactorKind.WEATHER]
    assert result.final_price == 60_000
    assert result.is_imminent_deal is True

    reservation = ReservationRecord(
        user_id="user-1",
        tee_time_id=tee_time.id,
        golf_club_id=tee_time.golf_club_id,
        tee_off=tee_time.tee_off,
        final_price=result.final_price,
        discount_breakdown=result.factors,
        is_imminent_deal=result.is_imminent_deal,
    )
    check = can_cancel(reservation, resolve_policy("STANDARD_V2"), now)
    assert check.can_cancel is False


@pytest.mark.parametrize(
    "hours,expected",
    [
        (30, 100_000),
        (20, 95_000),
        (10, 90_000),
        (5, 85_000),
        (2, 80_000),
        (-1, 80_000),
    ],
)
def test_time_tiers(now, hours, expected):
    """Test that discounts step up as tee-off approaches."""
    result = calculate_pricing(PricingContext(tee_time=_tee_time(now, hours), now=now))

    assert result.final_price == expected


@pytest.mark.parametrize(
    "base_price,expected",
    [
        (100_080, 95_100),
        (100_000, 95_000),
        (100_050, 95_000),
        (100_060, 95_100),
    ],
)
def test_rounds_to_nearest_unit(now, base_price, expected):
    """Test half-up rounding of the discounted price to the nearest 100."""
    result = calculate_pricing(
        PricingContext(tee_time=_tee_time(now, 20, base_price=base_price), now=now)
    )

    assert result.final_price == expected
    assert result.base_price + result.total_adjustment == expected


def test_price_never_increases_as_tee_off_approaches(now):
    """Test monotonicity across the full hour range with every layer active."""
    weather = WeatherSnapshot(sky=SkyCondition.CLOUDY, rain_probability=40)
    user = UserSnapshot(id="vip", segment=Segment.VIP)
    previous = None
    for quarter_hours in range(200, -20, -1):
        hours = quarter_hours / 4
        result = calculate_pricing(
            PricingContext(
                tee_time=_tee_time(now, hours, base_price=87_650, weather=weather),
                now=now,
                user=user,
                distance_km=3.0,
            )
        )
        if previous is not None:
            assert result.final_price <= previous
        previous = result.final_price


def test_discount_capped_at_forty_percent(now):
    """Test that stacked discounts give back everything above the cap."""
    weather = WeatherSnapshot(sky=SkyCondition.RAIN, rain_probability=80)
    user = UserSnapshot(id="vip", segment=Segment.VIP)

    result = calculate_pricing(
        PricingContext(
            tee_time=_tee_time(now, 1, weather=weather),
            now=now,
            user=user,
            distance_km=5.0,
        )
    )

    assert result.final_price == 60_000
    cap = [factor for factor in result.factors if factor.kind == FactorKind.CAP]
    assert len(cap) == 1
    assert cap[0].amount_delta == 15_000


def test_factor_deltas_sum_to_final_price(now):
    """Test that the breakdown explains the whole price change."""
    weather = WeatherSnapshot(sky=SkyCondition.CLOUDY, rain_probability=35)
    user = UserSnapshot(id="u", segment=Segment.ACTIVE)

    result = calculate_pricing(
        PricingContext(
            tee_time=_tee_time(now, 20, base_price=12_345, weather=weather),
            now=now,
            user=user,
            distance_km=10.0,
        )
    )

    assert result.base_price + result.total_adjustment == result.final_price
    assert result.final_price % 100 == 0
    assert result.factors[-1].kind == FactorKind.ROUNDING


def test_risk_segment_surcharge(now):
    """Test that risky users pay a surcharge."""
    user = UserSnapshot(id="risky", segment=Segment.RISK)

    result = calculate_pricing(
        PricingContext(tee_time=_tee_time(now, 30), now=now, user=user)
    )

    assert result.final_price == 103_000
    assert result.factors[0].kind == FactorKind.SEGMENT
    assert result.factors[0].amount_delta == 3_000


def test_nearby_discount_only_within_radius(now):
    """Test the location discount boundary."""
    engine = PricingEngine()
    near = engine.calculate_pricing(
        PricingContext(tee_time=_tee_time(now, 30), now=now, distance_km=15.0)
    )
    far = engine.calculate_pricing(
        PricingContext(tee_time=_tee_time(now, 30), now=now, distance_km=15.1)
    )

    assert near.final_price == 90_000
    assert far.final_price == 100_000


def test_missing_weather_is_neutral(now):
    """Test that an absent forecast contributes nothing."""
    result = calculate_pricing(PricingContext(tee_time=_tee_time(now, 30), now=now))

    assert all(factor.kind != FactorKind.WEATHER for factor in result.factors)


def test_price_never_negative_with_full_discount_rules(now):
    """Test the floor when rules allow the whole price away."""
    rules = DEFAULT_PRICING_RULES.model_copy(
        update={"max_discount_rate": Decimal("1"), "nearby_rate": Decimal("1")}
    )
    weather = WeatherSnapshot(sky=SkyCondition.RAIN, rain_probability=100)
    user = UserSnapshot(id="vip", segment=Segment.VIP)

    result = calculate_pricing(
        PricingContext(
            tee_time=_tee_time(now, 1, base_price=150, weather=weather),
            now=now,
            user=user,
            distance_km=0.5,
        ),
        rules,
    )

    assert result.final_price >= 0


def test_min_price_floor(now):
    """Test that a configured minimum price is enforced."""
    rules = DEFAULT_PRICING_RULES.model_copy(update={"min_price": 90_000})

    result = calculate_pricing(PricingContext(tee_time=_tee_time(now, 2), now=now), rules)

    assert result.final_price == 90_000
    assert result.factors[-1].kind == FactorKind.FLOOR


def test_suspended_user_is_blocked_but_priced(now):
    """Test that a suspension blocks the booking without hiding the price."""
    user = UserSnapshot(
        id="suspended",
        is_suspended=True,
        suspended_reason="NO_SHOW",
        suspended_at=now - timedelta(days=1),
        suspension_expires_at=now + timedelta(days=29),
    )

    result = calculate_pricing(PricingContext(tee_time=_tee_time(now, 20), now=now, user=user))

    assert result.is_blocked is True
    assert result.block_reason == BlockReason.USER_SUSPENDED
    assert result.final_price == 95_000


def test_expired_suspension_does_not_block(now):
    """Test that a suspension past its expiry no longer blocks."""
    user = UserSnapshot(
        id="was-suspended",
        is_suspended=True,
        suspended_reason="NO_SHOW",
        suspension_expires_at=now - timedelta(minutes=1),
    )

    result = calculate_pricing(PricingContext(tee_time=_tee_time(now, 20), now=now, user=user))

    assert result.is_blocked is False


def test_storm_blocks_tee_time(now):
    """Test that heavy rainfall closes the tee time."""
    weather = WeatherSnapshot(sky=SkyCondition.RAIN, rain_probability=95, rainfall_mm=12.5)

    result = calculate_pricing(
        PricingContext(tee_time=_tee_time(now, 20, weather=weather), now=now)
    )

    assert result.is_blocked is True
    assert result.block_reason == BlockReason.WEATHER_STORM


def test_tiers_must_grow_toward_tee_off():
    """Test that inverted tier rates are rejected."""
    from fairway.models import PricingRules, TimeTier

    with pytest.raises(ValueError):
        PricingRules(
            time_tiers=(
                TimeTier(within_hours=24, rate=Decimal("0.20"), label="far"),
                TimeTier(within_hours=3, rate=Decimal("0.05"), label="near"),
            )
        )


def test_naive_timestamps_rejected(now, tee_time):
    """Test that timestamps without a timezone are refused at the boundary."""
    naive = now.replace(tzinfo=None)

    with pytest.raises(ValidationError):
        PricingContext(tee_time=tee_time, now=naive)
    with pytest.raises(ValidationError):
        tee_time.model_validate({**tee_time.model_dump(), "tee_off": naive})
