"""Structured audit logging for money-moving and account-restricting actions.

Every cancellation, refund attempt, no-show decision, suspension and
settlement status change leaves one ``audit_event`` line so that admins
can reconstruct what happened to a reservation or a payout.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from fairway.logging import get_logger

logger = get_logger(__name__)


class AuditEventType(str, Enum):
    """Types of auditable events."""

    # Reservations
    RESERVATION_BOOKED = "reservation_booked"
    RESERVATION_CANCELLED = "reservation_cancelled"
    RESERVATION_NO_SHOW = "reservation_no_show"

    # Refunds
    REFUND_REQUESTED = "refund_requested"
    REFUND_FAILED = "refund_failed"

    # Users
    USER_SUSPENDED = "user_suspended"
    USER_SUSPENSION_LIFTED = "user_suspension_lifted"

    # Settlements
    SETTLEMENT_CREATED = "settlement_created"
    SETTLEMENT_CONFIRMED = "settlement_confirmed"
    SETTLEMENT_LOCKED = "settlement_locked"


class AuditLogger:
    """Centralized audit logging service."""

    @staticmethod
    def log_event(
        event_type: AuditEventType,
        actor_id: str,
        resource_type: str,
        resource_id: str | int,
        action: str,
        success: bool = True,
        metadata: Optional[dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> None:
        """
        Log an auditable event with structured context.

        Args:
            event_type: Type of audit event
            actor_id: User or admin performing the action ("system" for jobs)
            resource_type: Type of resource (reservation, user, settlement)
            resource_id: ID of the affected resource
            action: Human-readable action description
            success: Whether the action succeeded
            metadata: Additional context (amounts, reasons, counts)
            error: Error message if action failed
        """
        audit_entry = {
            "event_type": event_type.value,
            "actor_id": actor_id,
            "resource_type": resource_type,
            "resource_id": str(resource_id),
            "action": action,
            "success": success,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "metadata": metadata or {},
        }

        if error:
            audit_entry["error"] = error

        logger.info(
            "audit_event",
            **audit_entry,
        )

    @staticmethod
    def log_reservation_booked(
        actor_id: str,
        reservation_id: str,
        tee_time_id: int,
        final_price: int,
        is_imminent_deal: bool,
    ) -> None:
        """Log a paid booking."""
        AuditLogger.log_event(
            event_type=AuditEventType.RESERVATION_BOOKED,
            actor_id=actor_id,
            resource_type="reservation",
            resource_id=reservation_id,
            action=f"Booked tee time {tee_time_id}",
            metadata={
                "tee_time_id": tee_time_id,
                "final_price": final_price,
                "is_imminent_deal": is_imminent_deal,
            },
        )

    @staticmethod
    def log_reservation_cancelled(
        actor_id: str,
        reservation_id: str,
        reason: str,
        refund_amount: int,
    ) -> None:
        """Log reservation cancellation."""
        AuditLogger.log_event(
            event_type=AuditEventType.RESERVATION_CANCELLED,
            actor_id=actor_id,
            resource_type="reservation",
            resource_id=reservation_id,
            action="Reservation cancelled",
            metadata={"reason": reason, "refund_amount": refund_amount},
        )

    @staticmethod
    def log_refund(
        actor_id: str,
        reservation_id: str,
        amount: int,
        success: bool,
        message: str,
    ) -> None:
        """Log a refund attempt; failures are flagged for admin follow-up."""
        AuditLogger.log_event(
            event_type=(
                AuditEventType.REFUND_REQUESTED if success else AuditEventType.REFUND_FAILED
            ),
            actor_id=actor_id,
            resource_type="reservation",
            resource_id=reservation_id,
            action=f"Refund of {amount}",
            success=success,
            metadata={"amount": amount},
            error=None if success else message,
        )

    @staticmethod
    def log_no_show(
        actor_id: str,
        reservation_id: str,
        user_id: str,
        no_show_count: int,
    ) -> None:
        """Log a no-show decision."""
        AuditLogger.log_event(
            event_type=AuditEventType.RESERVATION_NO_SHOW,
            actor_id=actor_id,
            resource_type="reservation",
            resource_id=reservation_id,
            action="Marked as no-show",
            metadata={"user_id": user_id, "no_show_count": no_show_count},
        )

    @staticmethod
    def log_user_suspended(
        actor_id: str,
        user_id: str,
        reason: str,
        expires_at: Optional[datetime],
    ) -> None:
        """Log a user suspension (permanent when expires_at is None)."""
        AuditLogger.log_event(
            event_type=AuditEventType.USER_SUSPENDED,
            actor_id=actor_id,
            resource_type="user",
            resource_id=user_id,
            action=f"Suspended user: {reason}",
            metadata={
                "reason": reason,
                "expires_at": expires_at.isoformat() if expires_at else None,
                "permanent": expires_at is None,
            },
        )

    @staticmethod
    def log_suspension_lifted(actor_id: str, user_id: str) -> None:
        """Log the automatic lift of an expired suspension."""
        AuditLogger.log_event(
            event_type=AuditEventType.USER_SUSPENSION_LIFTED,
            actor_id=actor_id,
            resource_type="user",
            resource_id=user_id,
            action="Suspension expired and was lifted",
        )

    @staticmethod
    def log_settlement_status(
        event_type: AuditEventType,
        actor_id: str,
        settlement_id: str,
        golf_club_id: int,
        net_amount: int,
    ) -> None:
        """Log settlement creation, confirmation or locking."""
        AuditLogger.log_event(
            event_type=event_type,
            actor_id=actor_id,
            resource_type="settlement",
            resource_id=settlement_id,
            action=event_type.value.replace("_", " ").capitalize(),
            metadata={"golf_club_id": golf_club_id, "net_amount": net_amount},
        )
