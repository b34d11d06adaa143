"""Unit tests for no-show marking and suspensions."""

from datetime import timedelta

import pytest

from fairway.errors import ValidationError
from fairway.models import CancelReason, ReservationStatus, UserSnapshot
from fairway.services.cancellation_policy import (
    NO_SHOW_SUSPENSION_REASON,
    can_user_book,
    lift_expired_suspension,
    mark_no_show,
    resolve_policy,
    suspension_rule_for,
)


@pytest.fixture
def after_grace(paid_reservation):
    """Forty minutes after tee-off."""
    return paid_reservation.tee_off + timedelta(minutes=40)


def test_mark_no_show_after_grace(paid_reservation, user, after_grace):
    """Test marking a no-show once the grace period has passed."""
    result = mark_no_show(paid_reservation, user, after_grace)

    assert result.success is True
    assert result.user_suspended is False
    assert result.reservation.status == ReservationStatus.NO_SHOW
    assert result.reservation.refund_amount == 0
    assert result.reservation.cancel_reason == CancelReason.NO_SHOW
    assert result.reservation.no_show_marked_at == after_grace
    assert result.user.no_show_count == 1
    assert result.user.last_no_show_at == after_grace


def test_no_show_within_grace_rejected(paid_reservation, user):
    """Test that no-shows cannot be marked during the grace period."""
    during_grace = paid_reservation.tee_off + timedelta(minutes=29)

    result = mark_no_show(paid_reservation, user, during_grace)

    assert result.success is False
    assert result.reservation is None


def test_no_show_at_grace_end_allowed(paid_reservation, user):
    """Test the grace boundary."""
    result = mark_no_show(paid_reservation, user, paid_reservation.tee_off + timedelta(minutes=30))

    assert result.success is True


def test_marking_twice_is_rejected(paid_reservation, user, after_grace):
    """Test that the second marking is a no-op."""
    first = mark_no_show(paid_reservation, user, after_grace)

    second = mark_no_show(first.reservation, first.user, after_grace + timedelta(hours=1))

    assert second.success is False
    assert second.user is None


def test_cancelled_reservation_cannot_be_no_show(paid_reservation, user, after_grace):
    """Test that only PAID reservations can be marked."""
    cancelled = paid_reservation.evolve(status=ReservationStatus.CANCELLED)

    result = mark_no_show(cancelled, user, after_grace)

    assert result.success is False


def test_third_no_show_suspends_user(paid_reservation, user, after_grace):
    """Test that going from 2 to 3 no-shows suspends for 30 days."""
    repeat_offender = user.model_copy(update={"no_show_count": 2})

    result = mark_no_show(paid_reservation, repeat_offender, after_grace)

    assert result.user_suspended is True
    assert result.user.no_show_count == 3
    assert result.user.is_suspended is True
    assert result.user.suspended_reason == NO_SHOW_SUSPENSION_REASON
    assert result.user.suspended_at == after_grace
    assert result.user.suspension_expires_at == after_grace + timedelta(days=30)


def test_fifth_no_show_suspends_permanently(paid_reservation, user, after_grace):
    """Test the permanent suspension rule."""
    result = mark_no_show(
        paid_reservation, user.model_copy(update={"no_show_count": 4}), after_grace
    )

    assert result.user.is_suspended is True
    assert result.user.suspension_expires_at is None


def test_active_suspension_never_shortened(paid_reservation, user, after_grace):
    """Test that a longer running suspension is kept."""
    far_expiry = after_grace + timedelta(days=90)
    suspended = user.model_copy(
        update={
            "no_show_count": 3,
            "is_suspended": True,
            "suspended_reason": "MANUAL",
            "suspension_expires_at": far_expiry,
        }
    )

    result = mark_no_show(paid_reservation, suspended, after_grace)

    assert result.user.suspension_expires_at == far_expiry


def test_no_show_for_other_user_raises(paid_reservation, after_grace):
    """Test that the user must own the reservation."""
    with pytest.raises(ValidationError):
        mark_no_show(paid_reservation, UserSnapshot(id="someone-else"), after_grace)


def test_suspension_rule_thresholds():
    """Test which rule applies for each count."""
    policy = resolve_policy("STANDARD_V2")

    assert suspension_rule_for(policy, 2) is None
    assert suspension_rule_for(policy, 3).duration_days == 30
    assert suspension_rule_for(policy, 4).duration_days == 30
    assert suspension_rule_for(policy, 5).duration_days is None


def test_can_user_book_suspended(user, now):
    """Test that an active suspension blocks booking."""
    suspended = user.model_copy(
        update={
            "is_suspended": True,
            "suspended_reason": NO_SHOW_SUSPENSION_REASON,
            "suspension_expires_at": now + timedelta(days=3),
        }
    )

    check = can_user_book(suspended, now)

    assert check.can_book is False
    assert NO_SHOW_SUSPENSION_REASON in check.reason


def test_expired_suspension_is_lifted(user, now):
    """Test that an expired suspension is reported and cleared."""
    expired = user.model_copy(
        update={
            "is_suspended": True,
            "suspended_reason": NO_SHOW_SUSPENSION_REASON,
            "suspended_at": now - timedelta(days=31),
            "suspension_expires_at": now - timedelta(days=1),
        }
    )

    check = can_user_book(expired, now)
    lifted = lift_expired_suspension(expired, now)

    assert check.can_book is True
    assert check.suspension_lifted is True
    assert lifted.is_suspended is False
    assert lifted.suspension_expires_at is None
    assert lifted.no_show_count == expired.no_show_count


def test_lift_keeps_active_suspension(user, now):
    """Test that lifting leaves a running suspension alone."""
    active = user.model_copy(
        update={"is_suspended": True, "suspension_expires_at": now + timedelta(days=1)}
    )

    assert lift_expired_suspension(active, now) is active
