"""Cancellation and no-show orchestration.

A cancellation is committed before any money moves. The refund is a
second step whose failure is recorded on the reservation and audited for
follow-up, but never undoes the cancellation the user was shown.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from fairway.errors import PersistenceError
from fairway.logging import get_logger
from fairway.logging.audit import AuditLogger
from fairway.models.policy import CancellationPolicyConfig, NoShowResult, RefundOutcome
from fairway.models.reservation import CancelReason, ReservationRecord, ReservationStatus
from fairway.models.user import UserSnapshot
from fairway.services.cancellation_policy import (
    apply_refund_outcome,
    mark_no_show,
    request_cancellation,
)
from fairway.services.refund_gateway import RefundGateway
from fairway.storage.repository_base import (
    ReservationRepository,
    TeeTimeRepository,
    UserRepository,
)

logger = get_logger(__name__)


class RefundStatus(str, Enum):
    """Refund leg as reported back to the caller."""

    NOT_REQUIRED = "not_required"
    REQUESTED = "requested"
    FAILED = "failed"


class CancellationFlowResult:
    """Result of a cancellation attempt."""

    def __init__(
        self,
        success: bool,
        message: str,
        refund_amount: int = 0,
        refund_status: RefundStatus = RefundStatus.NOT_REQUIRED,
        reservation: Optional[ReservationRecord] = None,
    ):
        self.success = success
        self.message = message
        self.refund_amount = refund_amount
        self.refund_status = refund_status
        self.reservation = reservation


class NoShowFlowResult:
    """Result of a no-show marking."""

    def __init__(
        self,
        success: bool,
        message: str,
        user_suspended: bool = False,
        reservation: Optional[ReservationRecord] = None,
        user: Optional[UserSnapshot] = None,
    ):
        self.success = success
        self.message = message
        self.user_suspended = user_suspended
        self.reservation = reservation
        self.user = user


class CancellationFlowService:
    """Cancels reservations, refunds them and records no-shows."""

    def __init__(
        self,
        reservation_repo: ReservationRepository,
        tee_time_repo: TeeTimeRepository,
        user_repo: UserRepository,
        refund_gateway: RefundGateway,
        policy: Optional[CancellationPolicyConfig] = None,
    ):
        self.reservation_repo = reservation_repo
        self.tee_time_repo = tee_time_repo
        self.user_repo = user_repo
        self.refund_gateway = refund_gateway
        self.policy = policy

    async def cancel_reservation(
        self,
        reservation_id: str,
        actor_id: str,
        now: datetime,
        reason: CancelReason = CancelReason.USER_REQUEST,
    ) -> CancellationFlowResult:
        """Cancel a reservation and attempt its refund."""
        reservation = await self.reservation_repo.get_by_id(reservation_id)
        if not reservation:
            return CancellationFlowResult(False, "Reservation not found")

        if reason == CancelReason.USER_REQUEST and reservation.user_id != actor_id:
            logger.warning(
                "unauthorized_cancellation",
                reservation_id=reservation_id,
                actor_id=actor_id,
            )
            return CancellationFlowResult(False, "You can only cancel your own reservations")

        decision = request_cancellation(reservation, reason, now, self.policy)
        if not decision.success:
            logger.info(
                "cancellation_rejected",
                reservation_id=reservation_id,
                reason=decision.message,
            )
            return CancellationFlowResult(False, decision.message)

        try:
            swapped = await self.reservation_repo.update_if_status(
                decision.reservation, ReservationStatus.PAID
            )
        except Exception as e:
            logger.error(
                "cancellation_persist_failed",
                reservation_id=reservation_id,
                error=str(e),
                exc_info=True,
            )
            return CancellationFlowResult(False, "Cancellation failed. Please try again.")

        if not swapped:
            logger.warning("cancellation_conflict", reservation_id=reservation_id)
            return CancellationFlowResult(False, "Reservation was already cancelled")
        cancelled = decision.reservation

        if not await self.tee_time_repo.reopen(cancelled.tee_time_id):
            logger.warning("tee_time_reopen_skipped", tee_time_id=cancelled.tee_time_id)

        AuditLogger.log_reservation_cancelled(
            actor_id=actor_id,
            reservation_id=cancelled.id,
            reason=cancelled.cancel_reason.value,
            refund_amount=cancelled.refund_amount,
        )

        if cancelled.refund_amount == 0:
            return CancellationFlowResult(
                True, decision.message, 0, RefundStatus.NOT_REQUIRED, cancelled
            )

        outcome = await self._refund(cancelled)
        AuditLogger.log_refund(
            actor_id=actor_id,
            reservation_id=cancelled.id,
            amount=cancelled.refund_amount,
            success=outcome.success,
            message=outcome.message,
        )

        try:
            cancelled = await self.reservation_repo.update(
                apply_refund_outcome(cancelled, outcome)
            )
        except Exception as e:
            logger.error(
                "refund_status_persist_failed",
                reservation_id=cancelled.id,
                refund_success=outcome.success,
                error=str(e),
                exc_info=True,
            )

        if outcome.success:
            return CancellationFlowResult(
                True,
                decision.message,
                cancelled.refund_amount,
                RefundStatus.REQUESTED,
                cancelled,
            )
        return CancellationFlowResult(
            True,
            "Cancellation complete. The refund could not be processed yet; "
            "our team will follow up.",
            cancelled.refund_amount,
            RefundStatus.FAILED,
            cancelled,
        )

    async def _refund(self, reservation: ReservationRecord) -> RefundOutcome:
        if not reservation.payment_key:
            logger.error("refund_missing_payment_key", reservation_id=reservation.id)
            return RefundOutcome(success=False, message="No payment key on reservation")

        try:
            return await self.refund_gateway.refund(
                reservation.payment_key,
                reservation.refund_amount,
                reservation.cancel_reason.value,
                reservation_id=reservation.id,
            )
        except Exception as e:
            logger.error(
                "refund_gateway_error",
                reservation_id=reservation.id,
                error=str(e),
                exc_info=True,
            )
            return RefundOutcome(success=False, message=str(e))

    async def mark_no_show(
        self, reservation_id: str, actor_id: str, now: datetime
    ) -> NoShowFlowResult:
        """Mark a reservation as a no-show and suspend the user if due."""
        reservation = await self.reservation_repo.get_by_id(reservation_id)
        if not reservation:
            return NoShowFlowResult(False, "Reservation not found")

        user = await self.user_repo.get_by_id(reservation.user_id)
        if not user:
            return NoShowFlowResult(False, "User not found")

        decision = mark_no_show(reservation, user, now, self.policy)
        if not decision.success:
            return NoShowFlowResult(False, decision.message)

        try:
            swapped = await self.reservation_repo.update_if_status(
                decision.reservation, ReservationStatus.PAID
            )
        except Exception as e:
            logger.error(
                "no_show_persist_failed",
                reservation_id=reservation_id,
                error=str(e),
                exc_info=True,
            )
            return NoShowFlowResult(False, "Failed to record no-show. Please try again.")

        if not swapped:
            logger.warning("no_show_conflict", reservation_id=reservation_id)
            return NoShowFlowResult(False, "Reservation is no longer paid")
        marked = decision.reservation

        try:
            decision = await self._record_user_no_show(reservation, user, now)
        except Exception as e:
            logger.error(
                "no_show_user_persist_failed",
                reservation_id=reservation_id,
                user_id=user.id,
                error=str(e),
                exc_info=True,
            )
            # Put the reservation back to PAID so the marking can be retried
            try:
                await self.reservation_repo.update_if_status(
                    reservation, ReservationStatus.NO_SHOW
                )
            except Exception as rollback_error:
                logger.error(
                    "no_show_rollback_failed",
                    reservation_id=reservation_id,
                    error=str(rollback_error),
                    exc_info=True,
                )
            return NoShowFlowResult(False, "Failed to record no-show. Please try again.")
        user = decision.user

        AuditLogger.log_no_show(
            actor_id=actor_id,
            reservation_id=marked.id,
            user_id=user.id,
            no_show_count=user.no_show_count,
        )
        if decision.user_suspended:
            AuditLogger.log_user_suspended(
                actor_id=actor_id,
                user_id=user.id,
                reason=user.suspended_reason,
                expires_at=user.suspension_expires_at,
            )

        return NoShowFlowResult(True, decision.message, decision.user_suspended, marked, user)

    async def _record_user_no_show(
        self,
        reservation: ReservationRecord,
        user: UserSnapshot,
        now: datetime,
        attempts: int = 3,
    ) -> NoShowResult:
        """Increment the user's no-show count against the count that was read."""
        for _ in range(attempts):
            decision = mark_no_show(reservation, user, now, self.policy)
            if await self.user_repo.update_if_no_show_count(decision.user, user.no_show_count):
                return decision
            user = await self.user_repo.get_by_id(user.id)
            if not user:
                raise PersistenceError(f"User {reservation.user_id} disappeared")
        raise PersistenceError(f"No-show count for user {user.id} kept changing")
