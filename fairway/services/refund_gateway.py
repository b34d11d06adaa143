"""Refund gateway interface and Stripe implementation."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

import stripe

from fairway.logging import get_logger
from fairway.models.policy import RefundOutcome

logger = get_logger(__name__)


class RefundGateway(ABC):
    """Moves refund money back to the payer."""

    @abstractmethod
    async def refund(
        self, payment_key: str, amount: int, reason: str, reservation_id: Optional[str] = None
    ) -> RefundOutcome:
        """Request a refund of ``amount`` minor units against a payment.

        Gateway errors are reported as ``success=False``, never raised.
        """
        pass


class StripeRefundGateway(RefundGateway):
    """Refunds against Stripe payment intents."""

    def __init__(self, secret_key: str):
        """Initialize Stripe service."""
        stripe.api_key = secret_key

    async def refund(
        self, payment_key: str, amount: int, reason: str, reservation_id: Optional[str] = None
    ) -> RefundOutcome:
        metadata = {"cancel_reason": reason}
        if reservation_id:
            metadata["reservation_id"] = reservation_id

        try:
            refund = stripe.Refund.create(
                payment_intent=payment_key,
                amount=amount,
                reason="requested_by_customer",
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error(
                "stripe_refund_failed",
                reservation_id=reservation_id,
                amount=amount,
                error=str(e),
                exc_info=True,
            )
            return RefundOutcome(success=False, message=e.user_message or str(e))

        logger.info(
            "stripe_refund_created",
            reservation_id=reservation_id,
            refund_id=refund.id,
            status=refund.status,
            amount=amount,
        )
        if refund.status == "failed":
            return RefundOutcome(
                success=False,
                message=getattr(refund, "failure_reason", None) or "Refund failed",
                refund_id=refund.id,
            )
        return RefundOutcome(
            success=True,
            message="Refund requested",
            refund_id=refund.id,
            processed_at=datetime.now(timezone.utc),
        )
