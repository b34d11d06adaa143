"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from datetime import datetime, timedelta, timezone

import pytest

from fairway.models import (
    ReservationRecord,
    Segment,
    TeeTimeSnapshot,
    UserSnapshot,
)


@pytest.fixture
def now():
    """Fixed evaluation time."""
    return datetime(2025, 6, 14, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def tee_time(now):
    """Open tee time two days out, base price 100,000."""
    return TeeTimeSnapshot(
        id=101,
        golf_club_id=7,
        tee_off=now + timedelta(hours=50),
        base_price=100_000,
    )


@pytest.fixture
def user():
    """Regular user with a clean record."""
    return UserSnapshot(
        id="user-1",
        segment=Segment.ACTIVE,
        total_bookings=4,
        total_spent=400_000,
    )


@pytest.fixture
def paid_reservation(now, tee_time, user):
    """Paid reservation for the tee_time fixture, booked yesterday."""
    return ReservationRecord(
        user_id=user.id,
        tee_time_id=tee_time.id,
        golf_club_id=tee_time.golf_club_id,
        tee_off=tee_time.tee_off,
        final_price=100_000,
        payment_key="pi_3NkTestPaymentKey01",
        created_at=now - timedelta(days=1),
    )
