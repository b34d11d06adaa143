"""Booking flow service with tee-time locking.

Quotes a tee time for a user and books it. A booking holds the tee-time
lock, re-reads state, prices at ``now``, stores the PAID reservation and
then flips the tee time OPEN -> BOOKED with a conditional update. If the
conditional update loses, the reservation is removed again.
"""

from datetime import datetime
from typing import Optional

from fairway.errors import DoubleBookingError
from fairway.logging import get_logger
from fairway.logging.audit import AuditLogger
from fairway.models.policy import CancellationPolicyConfig
from fairway.models.pricing import PricingContext, PricingResult
from fairway.models.reservation import ReservationRecord
from fairway.services.cancellation_policy import (
    can_user_book,
    lift_expired_suspension,
    resolve_policy,
)
from fairway.services.pricing_engine import PricingEngine
from fairway.storage.repository_base import (
    ReservationRepository,
    TeeTimeLock,
    TeeTimeRepository,
    UserRepository,
)

logger = get_logger(__name__)


class BookingResult:
    """Result of a booking attempt."""

    def __init__(
        self,
        success: bool,
        message: str,
        reservation: Optional[ReservationRecord] = None,
        pricing: Optional[PricingResult] = None,
    ):
        self.success = success
        self.message = message
        self.reservation = reservation
        self.pricing = pricing


class BookingFlowService:
    """Quotes and books tee times."""

    def __init__(
        self,
        tee_time_repo: TeeTimeRepository,
        user_repo: UserRepository,
        reservation_repo: ReservationRepository,
        tee_time_lock: TeeTimeLock,
        pricing_engine: Optional[PricingEngine] = None,
        policy: Optional[CancellationPolicyConfig] = None,
    ):
        """
        Initialize booking flow service.

        Args:
            tee_time_repo: Tee time repository
            user_repo: User repository
            reservation_repo: Reservation repository
            tee_time_lock: Per-tee-time lock (Redis in production)
            pricing_engine: Engine to price with (default rules if omitted)
            policy: Cancellation policy stamped on new reservations
        """
        self.tee_time_repo = tee_time_repo
        self.user_repo = user_repo
        self.reservation_repo = reservation_repo
        self.tee_time_lock = tee_time_lock
        self.pricing_engine = pricing_engine or PricingEngine()
        self.policy = policy or resolve_policy("STANDARD_V2")

    async def quote(
        self,
        tee_time_id: int,
        now: datetime,
        user_id: Optional[str] = None,
        distance_km: Optional[float] = None,
    ) -> Optional[PricingResult]:
        """Price a tee time for display. Returns None if it does not exist."""
        tee_time = await self.tee_time_repo.get_by_id(tee_time_id)
        if not tee_time:
            return None

        user = await self.user_repo.get_by_id(user_id) if user_id else None
        return self.pricing_engine.calculate_pricing(
            PricingContext(tee_time=tee_time, now=now, user=user, distance_km=distance_km)
        )

    async def book(
        self,
        user_id: str,
        tee_time_id: int,
        now: datetime,
        distance_km: Optional[float] = None,
        payment_key: Optional[str] = None,
    ) -> BookingResult:
        """Book a tee time at the price computed right now."""
        async with self.tee_time_lock.acquire(tee_time_id) as acquired:
            if not acquired:
                logger.warning("lock_acquisition_failed", tee_time_id=tee_time_id)
                return BookingResult(False, "Tee time is being booked. Please try again.")

            tee_time = await self.tee_time_repo.get_by_id(tee_time_id)
            if not tee_time:
                return BookingResult(False, "Tee time not found")
            if not tee_time.is_open:
                return BookingResult(False, "Tee time is no longer available")

            user = await self.user_repo.get_by_id(user_id)
            if not user:
                return BookingResult(False, "User not found")

            check = can_user_book(user, now)
            if check.suspension_lifted:
                user = await self.user_repo.update(lift_expired_suspension(user, now))
                AuditLogger.log_suspension_lifted(actor_id="system", user_id=user.id)
            if not check.can_book:
                return BookingResult(False, check.reason)

            pricing = self.pricing_engine.calculate_pricing(
                PricingContext(tee_time=tee_time, now=now, user=user, distance_km=distance_km)
            )
            if pricing.is_blocked:
                logger.info(
                    "booking_blocked",
                    tee_time_id=tee_time_id,
                    user_id=user_id,
                    block_reason=pricing.block_reason.value,
                )
                return BookingResult(False, pricing.block_message, pricing=pricing)

            reservation = ReservationRecord(
                user_id=user.id,
                tee_time_id=tee_time.id,
                golf_club_id=tee_time.golf_club_id,
                tee_off=tee_time.tee_off,
                final_price=pricing.final_price,
                discount_breakdown=pricing.factors,
                payment_key=payment_key,
                policy_version=self.policy.version.value,
                is_imminent_deal=pricing.is_imminent_deal,
                created_at=now,
            )

            try:
                reservation = await self.reservation_repo.create_paid(reservation)
            except DoubleBookingError:
                logger.warning("double_booking_rejected", tee_time_id=tee_time_id)
                return BookingResult(False, "Tee time is no longer available", pricing=pricing)
            except Exception as e:
                logger.error(
                    "reservation_creation_failed",
                    tee_time_id=tee_time_id,
                    user_id=user_id,
                    error=str(e),
                    exc_info=True,
                )
                return BookingResult(False, "Failed to create reservation. Please try again.")

            if not await self.tee_time_repo.mark_booked_if_open(tee_time_id):
                logger.error("tee_time_status_conflict", tee_time_id=tee_time_id)
                # Rollback reservation
                await self.reservation_repo.delete(reservation.id)
                return BookingResult(False, "Tee time is no longer available", pricing=pricing)

            try:
                await self.user_repo.update(
                    user.model_copy(
                        update={
                            "total_bookings": user.total_bookings + 1,
                            "total_spent": user.total_spent + reservation.final_price,
                        }
                    )
                )
            except Exception as e:
                # The booking stands; counters only feed segment classification
                logger.error(
                    "booking_stats_update_failed",
                    reservation_id=reservation.id,
                    user_id=user_id,
                    error=str(e),
                    exc_info=True,
                )

            logger.info(
                "reservation_created",
                reservation_id=reservation.id,
                tee_time_id=tee_time_id,
                user_id=user_id,
                final_price=reservation.final_price,
                is_imminent_deal=reservation.is_imminent_deal,
            )
            AuditLogger.log_reservation_booked(
                actor_id=user.id,
                reservation_id=reservation.id,
                tee_time_id=tee_time_id,
                final_price=reservation.final_price,
                is_imminent_deal=reservation.is_imminent_deal,
            )
            return BookingResult(True, "Reservation confirmed!", reservation, pricing)
