"""Cancellation, refund and no-show policy.

All functions here are pure: they take snapshots and ``now`` and return
decision records (and updated copies of the snapshots). Persisting those
copies, and actually moving money, is the caller's job.

Eligibility failures are expected outcomes, so they come back as
``success=False`` / ``can_cancel=False`` with a readable reason. Only a
malformed request (unknown policy, wrong user) raises.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from fairway.errors import UnknownPolicyVersion, ValidationError
from fairway.models.policy import (
    BookingCheck,
    CancellationCheck,
    CancellationInfo,
    CancellationPolicyConfig,
    CancellationResult,
    NoShowResult,
    PolicyVersion,
    RefundOutcome,
    RefundTier,
    SuspensionRule,
)
from fairway.models.reservation import (
    CancelReason,
    PaymentStatus,
    ReservationRecord,
    ReservationStatus,
)
from fairway.models.user import UserSnapshot
from fairway.money import percent_of

NO_SHOW_SUSPENSION_REASON = "NO_SHOW"

POLICIES: dict[PolicyVersion, CancellationPolicyConfig] = {
    PolicyVersion.STANDARD_V2: CancellationPolicyConfig(
        version=PolicyVersion.STANDARD_V2,
        cancel_cutoff_hours=24,
        # Full refund above the cutoff, nothing below it
        refund_tiers=(RefundTier(min_hours_before=24, refund_rate=Decimal("1")),),
        no_show_grace_minutes=30,
        imminent_deal_cancellable=False,
        suspension_rules=(
            SuspensionRule(min_no_shows=3, duration_days=30),
            SuspensionRule(min_no_shows=5, duration_days=None),
        ),
    ),
}


def resolve_policy(version: PolicyVersion | str) -> CancellationPolicyConfig:
    """Map a policy version to its config, rejecting unknown versions."""
    try:
        key = PolicyVersion(version)
    except ValueError:
        raise UnknownPolicyVersion(str(version)) from None
    if key not in POLICIES:
        raise UnknownPolicyVersion(key.value)
    return POLICIES[key]


def _policy_for(
    reservation: ReservationRecord, policy: Optional[CancellationPolicyConfig]
) -> CancellationPolicyConfig:
    return policy if policy is not None else resolve_policy(reservation.policy_version)


def can_cancel(
    reservation: ReservationRecord,
    policy: CancellationPolicyConfig,
    now: datetime,
) -> CancellationCheck:
    """Decide whether a reservation may be cancelled. First failing rule wins."""
    hours_left = reservation.hours_until_tee_off(now)

    if reservation.status != ReservationStatus.PAID:
        return CancellationCheck(
            can_cancel=False,
            reason=f"Reservation is not in cancellable state ({reservation.status.value})",
            hours_left=hours_left,
        )

    if reservation.is_imminent_deal and not policy.imminent_deal_cancellable:
        return CancellationCheck(
            can_cancel=False,
            reason="Imminent deal - no cancellation or refund. Please contact the golf club.",
            hours_left=hours_left,
        )

    if hours_left < policy.cancel_cutoff_hours:
        return CancellationCheck(
            can_cancel=False,
            reason=(
                f"Past cutoff: cancellation closes {policy.cancel_cutoff_hours} hours "
                "before tee-off. Please contact the golf club."
            ),
            hours_left=hours_left,
        )

    return CancellationCheck(can_cancel=True, reason="Cancellable", hours_left=hours_left)


def compute_refund(
    reservation: ReservationRecord,
    policy: CancellationPolicyConfig,
    hours_left: float,
) -> int:
    """Refund owed under the policy's tiers, never more than the price paid."""
    if reservation.is_imminent_deal:
        return 0
    tier = next(
        (t for t in policy.refund_tiers if hours_left >= t.min_hours_before),
        None,
    )
    if tier is None:
        return 0
    return min(percent_of(reservation.final_price, tier.refund_rate), reservation.final_price)


def request_cancellation(
    reservation: ReservationRecord,
    reason: CancelReason | str,
    now: datetime,
    policy: Optional[CancellationPolicyConfig] = None,
) -> CancellationResult:
    """Cancel a reservation if the policy allows it.

    On success the returned reservation is CANCELLED and carries the refund
    amount; the refund itself is a separate step (see ``apply_refund_outcome``).
    """
    if reservation is None:
        raise ValidationError("reservation", "reservation is required")
    try:
        cancel_reason = CancelReason(reason)
    except ValueError:
        raise ValidationError("reason", f"Unknown cancel reason '{reason}'") from None

    policy = _policy_for(reservation, policy)
    check = can_cancel(reservation, policy, now)
    if not check.can_cancel:
        return CancellationResult(success=False, message=check.reason)

    refund_amount = compute_refund(reservation, policy, check.hours_left)
    cancelled = reservation.evolve(
        status=ReservationStatus.CANCELLED,
        cancelled_at=now,
        cancel_reason=cancel_reason,
        refund_amount=refund_amount,
        payment_status=(
            PaymentStatus.REFUND_PENDING if refund_amount > 0 else reservation.payment_status
        ),
    )

    if refund_amount > 0:
        message = "Cancellation complete. Refunds take 3-5 business days."
    else:
        message = "Cancellation complete. No refund is due under the policy."

    return CancellationResult(
        success=True,
        message=message,
        refund_amount=refund_amount,
        reservation=cancelled,
    )


def apply_refund_outcome(
    reservation: ReservationRecord, outcome: RefundOutcome
) -> ReservationRecord:
    """Record the refund leg. A failed refund never reverts the cancellation."""
    if reservation.status != ReservationStatus.CANCELLED:
        raise ValidationError(
            "reservation",
            f"Refund outcome applies to CANCELLED reservations, got {reservation.status.value}",
        )
    if outcome.success:
        return reservation.evolve(
            status=ReservationStatus.REFUNDED,
            payment_status=PaymentStatus.REFUNDED,
        )
    return reservation.evolve(payment_status=PaymentStatus.REFUND_FAILED)


def suspension_rule_for(
    policy: CancellationPolicyConfig, no_show_count: int
) -> Optional[SuspensionRule]:
    """Harshest suspension rule the count has reached, if any."""
    return next(
        (rule for rule in policy.suspension_rules if no_show_count >= rule.min_no_shows),
        None,
    )


def _suspend(
    user: UserSnapshot, rule: SuspensionRule, now: datetime
) -> UserSnapshot:
    expires_at = (
        now + timedelta(days=rule.duration_days) if rule.duration_days is not None else None
    )
    # An active suspension is never shortened
    if user.is_suspended_at(now):
        current = user.suspension_expires_at
        if current is None or (expires_at is not None and current > expires_at):
            expires_at = current

    return user.model_copy(
        update={
            "is_suspended": True,
            "suspended_reason": NO_SHOW_SUSPENSION_REASON,
            "suspended_at": now,
            "suspension_expires_at": expires_at,
        }
    )


def mark_no_show(
    reservation: ReservationRecord,
    user: UserSnapshot,
    now: datetime,
    policy: Optional[CancellationPolicyConfig] = None,
) -> NoShowResult:
    """Mark a paid reservation as a no-show and apply the suspension rules."""
    if user.id != reservation.user_id:
        raise ValidationError(
            "user", f"User {user.id} does not own reservation {reservation.id}"
        )

    policy = _policy_for(reservation, policy)

    if reservation.no_show_marked_at is not None:
        return NoShowResult(success=False, message="Reservation is already marked as no-show")

    if reservation.status != ReservationStatus.PAID:
        return NoShowResult(
            success=False,
            message=(
                "Only paid reservations can be marked as no-show "
                f"({reservation.status.value})"
            ),
        )

    grace_end = reservation.tee_off + timedelta(minutes=policy.no_show_grace_minutes)
    if now < grace_end:
        return NoShowResult(
            success=False,
            message=(
                f"No-show can be marked {policy.no_show_grace_minutes} minutes after tee-off"
            ),
        )

    marked = reservation.evolve(
        status=ReservationStatus.NO_SHOW,
        no_show_marked_at=now,
        refund_amount=0,
        cancel_reason=CancelReason.NO_SHOW,
    )

    new_count = user.no_show_count + 1
    updated_user = user.model_copy(
        update={"no_show_count": new_count, "last_no_show_at": now}
    )

    rule = suspension_rule_for(policy, new_count)
    if rule is not None:
        updated_user = _suspend(updated_user, rule, now)

    return NoShowResult(
        success=True,
        message=(
            "No-show recorded. The user account has been suspended."
            if rule is not None
            else "No-show recorded."
        ),
        user_suspended=rule is not None,
        reservation=marked,
        user=updated_user,
    )


def can_user_book(user: UserSnapshot, now: datetime) -> BookingCheck:
    """Check whether a user may book, reporting suspensions that have run out."""
    if not user.is_suspended:
        return BookingCheck(can_book=True, reason="Booking allowed")

    if not user.is_suspended_at(now):
        return BookingCheck(
            can_book=True,
            reason="Booking allowed (suspension expired)",
            suspension_lifted=True,
        )

    reason = user.suspended_reason or "Account suspended"
    if user.suspension_expires_at is None:
        detail = "permanent suspension"
    else:
        detail = f"suspended until {user.suspension_expires_at.date().isoformat()}"
    return BookingCheck(can_book=False, reason=f"Booking restricted ({reason}): {detail}")


def lift_expired_suspension(user: UserSnapshot, now: datetime) -> UserSnapshot:
    """Clear a suspension whose expiry has passed; otherwise return ``user``."""
    if not user.is_suspended or user.is_suspended_at(now):
        return user
    return user.model_copy(
        update={
            "is_suspended": False,
            "suspended_reason": None,
            "suspended_at": None,
            "suspension_expires_at": None,
        }
    )


def cancellation_info(
    reservation: ReservationRecord,
    policy: CancellationPolicyConfig,
    now: datetime,
) -> CancellationInfo:
    """Badge and description shown next to a reservation."""
    if reservation.is_imminent_deal and not policy.imminent_deal_cancellable:
        return CancellationInfo(
            can_cancel=False,
            badge="No cancellation or refund",
            description="Imminent deals cannot be cancelled or refunded.",
        )

    if reservation.hours_until_tee_off(now) < policy.cancel_cutoff_hours:
        return CancellationInfo(
            can_cancel=False,
            badge="Not cancellable",
            description=(
                f"Cancellation closes {policy.cancel_cutoff_hours} hours before tee-off."
            ),
        )

    return CancellationInfo(
        can_cancel=reservation.status == ReservationStatus.PAID,
        badge="Free cancellation",
        description=(
            f"Full refund until {policy.cancel_cutoff_hours} hours before tee-off."
        ),
    )
