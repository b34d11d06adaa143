"""Settlement orchestration: preview, draft, confirm, lock and notes."""

from datetime import datetime
from typing import Optional

from fairway.errors import AlreadySettledError, SettlementTransitionError
from fairway.logging import get_logger
from fairway.logging.audit import AuditEventType, AuditLogger
from fairway.models.settlement import Settlement, SettlementConfig, SettlementPreview
from fairway.services.settlement_calculator import (
    bind_reservations,
    calculate_settlement_preview,
    confirm_settlement,
    create_settlement_draft,
    lock_settlement,
    update_settlement_notes,
)
from fairway.storage.repository_base import ReservationRepository, SettlementRepository

logger = get_logger(__name__)


class SettlementFlowResult:
    """Result of a settlement operation."""

    def __init__(
        self,
        success: bool,
        message: str,
        settlement: Optional[Settlement] = None,
        preview: Optional[SettlementPreview] = None,
    ):
        self.success = success
        self.message = message
        self.settlement = settlement
        self.preview = preview


class SettlementFlowService:
    """Admin-side settlement operations for golf clubs."""

    def __init__(
        self,
        reservation_repo: ReservationRepository,
        settlement_repo: SettlementRepository,
        config: Optional[SettlementConfig] = None,
    ):
        self.reservation_repo = reservation_repo
        self.settlement_repo = settlement_repo
        self.config = config or SettlementConfig()

    async def preview(
        self, golf_club_id: int, period_start: datetime, period_end: datetime
    ) -> SettlementPreview:
        """Compute what a settlement for the period would contain."""
        reservations = await self.reservation_repo.list_for_club(
            golf_club_id, period_start, period_end
        )
        return calculate_settlement_preview(
            golf_club_id, period_start, period_end, reservations, self.config
        )

    async def create_draft(
        self,
        golf_club_id: int,
        period_start: datetime,
        period_end: datetime,
        actor_id: str,
        now: datetime,
        notes: Optional[str] = None,
    ) -> SettlementFlowResult:
        """Create a DRAFT settlement and bind its reservations to it."""
        preview = await self.preview(golf_club_id, period_start, period_end)
        if not preview.can_create:
            logger.info(
                "settlement_preview_rejected",
                golf_club_id=golf_club_id,
                validation_errors=preview.validation_errors,
                included_count=preview.included_count,
            )
            reason = "; ".join(preview.validation_errors) or "Nothing to settle in this period"
            return SettlementFlowResult(False, reason, preview=preview)

        settlement = create_settlement_draft(preview, actor_id, now, notes)

        included = set(settlement.reservation_ids)
        candidates = [
            r
            for r in await self.reservation_repo.list_for_club(
                golf_club_id, period_start, period_end
            )
            if r.id in included
        ]

        try:
            bind_reservations(settlement, candidates)
            await self.reservation_repo.bind_to_settlement(candidates, settlement.id)
        except AlreadySettledError as e:
            logger.warning(
                "settlement_bind_conflict",
                settlement_id=settlement.id,
                reservation_id=e.reservation_id,
                other_settlement_id=e.settlement_id,
            )
            return SettlementFlowResult(False, str(e), preview=preview)

        try:
            settlement = await self.settlement_repo.create(settlement)
        except Exception as e:
            logger.error(
                "settlement_create_failed",
                settlement_id=settlement.id,
                golf_club_id=golf_club_id,
                error=str(e),
                exc_info=True,
            )
            # Release the reservations so a later draft can pick them up
            try:
                await self.reservation_repo.unbind_from_settlement(settlement.id)
            except Exception as unbind_error:
                logger.error(
                    "settlement_unbind_failed",
                    settlement_id=settlement.id,
                    error=str(unbind_error),
                    exc_info=True,
                )
            return SettlementFlowResult(
                False, "Failed to create settlement. Please try again.", preview=preview
            )

        logger.info(
            "settlement_created",
            settlement_id=settlement.id,
            golf_club_id=golf_club_id,
            reservation_count=len(settlement.reservation_ids),
            net_amount=settlement.totals.net_amount,
        )
        AuditLogger.log_settlement_status(
            AuditEventType.SETTLEMENT_CREATED,
            actor_id=actor_id,
            settlement_id=settlement.id,
            golf_club_id=golf_club_id,
            net_amount=settlement.totals.net_amount,
        )
        return SettlementFlowResult(True, "Settlement created", settlement, preview)

    async def confirm(self, settlement_id: str, actor_id: str, now: datetime) -> SettlementFlowResult:
        """DRAFT -> CONFIRMED."""
        return await self._transition(
            settlement_id,
            actor_id,
            lambda s: confirm_settlement(s, actor_id, now),
            AuditEventType.SETTLEMENT_CONFIRMED,
        )

    async def lock(self, settlement_id: str, actor_id: str, now: datetime) -> SettlementFlowResult:
        """CONFIRMED -> LOCKED."""
        return await self._transition(
            settlement_id,
            actor_id,
            lambda s: lock_settlement(s, actor_id, now),
            AuditEventType.SETTLEMENT_LOCKED,
        )

    async def update_notes(
        self, settlement_id: str, actor_id: str, notes: Optional[str]
    ) -> SettlementFlowResult:
        """Edit notes on a settlement that is not locked."""
        return await self._transition(
            settlement_id, actor_id, lambda s: update_settlement_notes(s, notes)
        )

    async def _transition(
        self,
        settlement_id: str,
        actor_id: str,
        change,
        event_type: Optional[AuditEventType] = None,
    ) -> SettlementFlowResult:
        settlement = await self.settlement_repo.get_by_id(settlement_id)
        if not settlement:
            return SettlementFlowResult(False, "Settlement not found")

        try:
            updated = change(settlement)
        except SettlementTransitionError as e:
            logger.warning(
                "settlement_transition_rejected",
                settlement_id=settlement_id,
                actor_id=actor_id,
                current=e.current,
                target=e.target,
            )
            return SettlementFlowResult(False, str(e), settlement)

        updated = await self.settlement_repo.update(updated)

        if event_type is not None:
            AuditLogger.log_settlement_status(
                event_type,
                actor_id=actor_id,
                settlement_id=updated.id,
                golf_club_id=updated.golf_club_id,
                net_amount=updated.totals.net_amount,
            )
        return SettlementFlowResult(True, f"Settlement is {updated.status.value}", updated)
