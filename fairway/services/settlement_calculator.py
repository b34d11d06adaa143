"""Settlement calculation and lifecycle guards.

A settlement closes out one golf club's reservations whose tee-off falls
in a half-open window ``[period_start, period_end)``. Amounts are integers
in minor currency units, so ``net_amount`` is the exact sum of the lines'
net contributions.

Lifecycle: DRAFT -> CONFIRMED -> LOCKED, forward only. A LOCKED settlement
and the ``settlement_id`` of its reservations never change again.
"""

from collections import Counter
from datetime import datetime, timezone, tzinfo
from decimal import Decimal
from typing import Iterable, Optional

from fairway.errors import (
    AlreadySettledError,
    SettlementLockedError,
    SettlementTransitionError,
    ValidationError,
)
from fairway.models.reservation import ReservationRecord, ReservationStatus
from fairway.models.settlement import (
    ExcludedReservation,
    ExclusionReason,
    Settlement,
    SettlementConfig,
    SettlementLine,
    SettlementPreview,
    SettlementStatus,
    SettlementTotals,
)
from fairway.money import percent_of

# Statuses in which the reservation held the tee time
_OCCUPYING_STATUSES = frozenset(
    {ReservationStatus.PAID, ReservationStatus.COMPLETED, ReservationStatus.NO_SHOW}
)


def is_status_included(status: ReservationStatus, config: SettlementConfig) -> bool:
    """Whether a reservation in ``status`` counts toward a settlement."""
    if status in (ReservationStatus.PAID, ReservationStatus.COMPLETED):
        return True
    if status == ReservationStatus.NO_SHOW:
        return config.include_no_show
    if status == ReservationStatus.CANCELLED:
        return config.include_cancelled
    if status == ReservationStatus.REFUNDED:
        return config.include_refunded
    return False


def _line(reservation: ReservationRecord) -> SettlementLine:
    return SettlementLine(
        reservation_id=reservation.id,
        user_id=reservation.user_id,
        tee_time_id=reservation.tee_time_id,
        tee_off=reservation.tee_off,
        status=reservation.status,
        final_price=reservation.final_price,
        refund_amount=reservation.refund_amount,
        net_contribution=reservation.net_contribution,
        is_imminent_deal=reservation.is_imminent_deal,
        policy_version=reservation.policy_version,
    )


def calculate_totals(
    lines: Iterable[SettlementLine], commission_rate: Decimal
) -> SettlementTotals:
    """Sum gross, refunds and net; derive the platform fee and club payout."""
    gross = refunded = net = 0
    for line in lines:
        gross += line.final_price
        refunded += line.refund_amount
        net += line.net_contribution
    platform_fee = percent_of(net, commission_rate)
    return SettlementTotals(
        gross_amount=gross,
        refund_amount=refunded,
        net_amount=net,
        platform_fee=platform_fee,
        club_payout=net - platform_fee,
    )


def calculate_settlement_preview(
    golf_club_id: int,
    period_start: datetime,
    period_end: datetime,
    reservations: Iterable[ReservationRecord],
    config: Optional[SettlementConfig] = None,
) -> SettlementPreview:
    """Build the settlement a club would get for the period right now.

    Reservations already bound to a settlement are excluded, as are
    later duplicates of a tee time that already has an occupying
    reservation (the earliest-created one is kept and the rest flagged).
    """
    config = config or SettlementConfig()
    preview = SettlementPreview(
        golf_club_id=golf_club_id,
        period_start=period_start,
        period_end=period_end,
        config=config,
    )

    if period_end <= period_start:
        preview.validation_errors.append("Period end must be after period start")
    if not Decimal("0") <= config.commission_rate <= Decimal("1"):
        preview.validation_errors.append("Commission rate must be between 0 and 1")
    if preview.validation_errors:
        return preview

    candidates = sorted(
        (
            r
            for r in reservations
            if r.golf_club_id == golf_club_id and period_start <= r.tee_off < period_end
        ),
        key=lambda r: (r.created_at, r.id),
    )

    lines: list[SettlementLine] = []
    occupied: dict[int, str] = {}
    for reservation in candidates:
        if reservation.is_settled:
            preview.excluded.append(
                ExcludedReservation(
                    reservation_id=reservation.id,
                    tee_time_id=reservation.tee_time_id,
                    reason=ExclusionReason.ALREADY_SETTLED,
                    settlement_id=reservation.settlement_id,
                )
            )
            continue

        if not is_status_included(reservation.status, config):
            preview.excluded.append(
                ExcludedReservation(
                    reservation_id=reservation.id,
                    tee_time_id=reservation.tee_time_id,
                    reason=ExclusionReason.STATUS_NOT_ELIGIBLE,
                )
            )
            continue

        if reservation.status in _OCCUPYING_STATUSES:
            kept = occupied.get(reservation.tee_time_id)
            if kept is not None:
                preview.excluded.append(
                    ExcludedReservation(
                        reservation_id=reservation.id,
                        tee_time_id=reservation.tee_time_id,
                        reason=ExclusionReason.DUPLICATE_BOOKING,
                    )
                )
                preview.warnings.append(
                    f"Tee time {reservation.tee_time_id} has more than one paid reservation; "
                    f"kept {kept}, excluded {reservation.id} for review"
                )
                continue
            occupied[reservation.tee_time_id] = reservation.id

        lines.append(_line(reservation))

    lines.sort(key=lambda line: (line.tee_off, line.reservation_id), reverse=True)
    preview.reservations = lines
    preview.totals = calculate_totals(lines, config.commission_rate)
    preview.breakdown_by_status = dict(Counter(line.status for line in lines))

    settled = preview.already_settled_count
    if settled:
        preview.warnings.append(
            f"{settled} reservation(s) already included in another settlement and excluded"
        )
    not_eligible = sum(
        1 for item in preview.excluded if item.reason == ExclusionReason.STATUS_NOT_ELIGIBLE
    )
    if not_eligible:
        preview.warnings.append(
            f"{not_eligible} reservation(s) excluded based on status and configuration"
        )
    if not candidates:
        preview.warnings.append("No reservations found in this period")
    elif preview.totals.gross_amount == 0:
        preview.warnings.append("No revenue in this period (gross amount = 0)")

    return preview


def create_settlement_draft(
    preview: SettlementPreview,
    actor_id: str,
    now: datetime,
    notes: Optional[str] = None,
) -> Settlement:
    """Turn a preview into a DRAFT settlement."""
    if not preview.can_create:
        problems = preview.validation_errors or ["nothing to settle in this period"]
        raise ValidationError("preview", "; ".join(problems))

    return Settlement(
        golf_club_id=preview.golf_club_id,
        period_start=preview.period_start,
        period_end=preview.period_end,
        status=SettlementStatus.DRAFT,
        totals=preview.totals,
        commission_rate=preview.config.commission_rate,
        reservation_ids=tuple(line.reservation_id for line in preview.reservations),
        notes=notes,
        created_by=actor_id,
        created_at=now,
    )


def bind_reservations(
    settlement: Settlement, reservations: Iterable[ReservationRecord]
) -> list[ReservationRecord]:
    """Attach reservations to a settlement, refusing any bound elsewhere."""
    if settlement.status == SettlementStatus.LOCKED:
        raise SettlementLockedError("BIND")

    members = set(settlement.reservation_ids)
    bound = []
    for reservation in reservations:
        if reservation.id not in members:
            raise ValidationError(
                "reservations",
                f"Reservation {reservation.id} is not part of settlement {settlement.id}",
            )
        if reservation.settlement_id not in (None, settlement.id):
            raise AlreadySettledError(reservation.id, reservation.settlement_id)
        bound.append(reservation.evolve(settlement_id=settlement.id))
    return bound


def can_confirm(settlement: Settlement) -> bool:
    return settlement.can_confirm


def can_lock(settlement: Settlement) -> bool:
    return settlement.can_lock


def can_edit(settlement: Settlement) -> bool:
    return settlement.can_edit


def confirm_settlement(settlement: Settlement, actor_id: str, now: datetime) -> Settlement:
    """DRAFT -> CONFIRMED."""
    if settlement.status == SettlementStatus.LOCKED:
        raise SettlementLockedError(SettlementStatus.CONFIRMED.value)
    if not settlement.can_confirm:
        raise SettlementTransitionError(
            settlement.status.value, SettlementStatus.CONFIRMED.value
        )
    return settlement.model_copy(
        update={
            "status": SettlementStatus.CONFIRMED,
            "confirmed_by": actor_id,
            "confirmed_at": now,
        }
    )


def lock_settlement(settlement: Settlement, actor_id: str, now: datetime) -> Settlement:
    """CONFIRMED -> LOCKED."""
    if settlement.status == SettlementStatus.LOCKED:
        raise SettlementLockedError(SettlementStatus.LOCKED.value)
    if not settlement.can_lock:
        raise SettlementTransitionError(settlement.status.value, SettlementStatus.LOCKED.value)
    return settlement.model_copy(
        update={
            "status": SettlementStatus.LOCKED,
            "locked_by": actor_id,
            "locked_at": now,
        }
    )


def transition_settlement(
    settlement: Settlement,
    target: SettlementStatus,
    actor_id: str,
    now: datetime,
) -> Settlement:
    """Move a settlement to ``target``; only forward single steps are allowed."""
    if target == SettlementStatus.CONFIRMED:
        return confirm_settlement(settlement, actor_id, now)
    if target == SettlementStatus.LOCKED:
        return lock_settlement(settlement, actor_id, now)
    if settlement.status == SettlementStatus.LOCKED:
        raise SettlementLockedError(target.value)
    raise SettlementTransitionError(settlement.status.value, target.value)


def update_settlement_notes(settlement: Settlement, notes: Optional[str]) -> Settlement:
    """Edit admin notes on a settlement that is not yet locked."""
    if not settlement.can_edit:
        raise SettlementLockedError()
    return settlement.model_copy(update={"notes": notes})


def month_period(year: int, month: int, tz: tzinfo = timezone.utc) -> tuple[datetime, datetime]:
    """Half-open ``[first day, first day of next month)`` window for a month."""
    if not 1 <= month <= 12:
        raise ValidationError("month", f"Month must be 1-12, got {month}")
    start = datetime(year, month, 1, tzinfo=tz)
    end = datetime(year + (month == 12), month % 12 + 1, 1, tzinfo=tz)
    return start, end
