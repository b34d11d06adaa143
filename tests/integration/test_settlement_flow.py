"""Integration tests for the settlement lifecycle."""

from datetime import datetime, timedelta, timezone

import pytest

from fairway.errors import PersistenceError
from fairway.models import ReservationRecord, ReservationStatus, SettlementStatus
from fairway.services.settlement_calculator import month_period
from fairway.services.settlement_flow import SettlementFlowService
from fairway.storage.memory import InMemoryReservationRepository, InMemorySettlementRepository

CLUB = 7


def _reservation(tee_time_id, tee_off, final_price, **changes):
    return ReservationRecord(
        user_id=f"user-{tee_time_id}",
        tee_time_id=tee_time_id,
        golf_club_id=CLUB,
        tee_off=tee_off,
        final_price=final_price,
        created_at=tee_off - timedelta(days=2),
        **changes,
    )


@pytest.fixture
def june():
    """June 2025."""
    return month_period(2025, 6)


@pytest.fixture
def reservation_repo(june):
    """June reservations for one club."""
    start, _ = june
    return InMemoryReservationRepository(
        [
            _reservation(
                1,
                start + timedelta(days=2),
                100_000,
                status=ReservationStatus.CANCELLED,
                refund_amount=50_000,
            ),
            _reservation(2, start + timedelta(days=9), 80_000),
            _reservation(3, start + timedelta(days=15), 90_000, status=ReservationStatus.COMPLETED),
        ]
    )


@pytest.fixture
def service(reservation_repo):
    """Settlement flow over in-memory repositories."""
    return SettlementFlowService(reservation_repo, InMemorySettlementRepository())


@pytest.mark.asyncio
async def test_full_lifecycle(service, reservation_repo, june, now):
    """Test preview, draft, confirm and lock."""
    start, end = june

    preview = await service.preview(CLUB, start, end)
    assert preview.totals.net_amount == 220_000

    created = await service.create_draft(CLUB, start, end, "admin-1", now, notes="June")
    assert created.success is True
    settlement = created.settlement
    assert settlement.status == SettlementStatus.DRAFT
    for reservation_id in settlement.reservation_ids:
        assert (await reservation_repo.get_by_id(reservation_id)).settlement_id == settlement.id

    confirmed = await service.confirm(settlement.id, "admin-2", now)
    assert confirmed.success is True
    assert confirmed.settlement.status == SettlementStatus.CONFIRMED

    locked = await service.lock(settlement.id, "admin-3", now + timedelta(hours=1))
    assert locked.success is True
    assert locked.settlement.locked_by == "admin-3"


@pytest.mark.asyncio
async def test_locked_settlement_is_immutable(service, june, now):
    """Test that a LOCKED settlement refuses edits and transitions."""
    start, end = june
    settlement = (await service.create_draft(CLUB, start, end, "admin", now)).settlement
    await service.confirm(settlement.id, "admin", now)
    await service.lock(settlement.id, "admin", now)

    edit = await service.update_notes(settlement.id, "admin", "changed")
    relock = await service.lock(settlement.id, "admin", now)
    reconfirm = await service.confirm(settlement.id, "admin", now)

    assert edit.success is False
    assert relock.success is False
    assert reconfirm.success is False
    assert edit.settlement.notes is None


@pytest.mark.asyncio
async def test_settled_reservations_not_settled_twice(service, june, now):
    """Test that a second draft for the same period finds nothing to settle."""
    start, end = june
    first = await service.create_draft(CLUB, start, end, "admin", now)

    second = await service.create_draft(CLUB, start, end, "admin", now)

    assert first.success is True
    assert second.success is False
    assert second.preview.already_settled_count == 3


@pytest.mark.asyncio
async def test_late_reservation_goes_to_new_settlement(service, reservation_repo, june, now):
    """Test that only unbound reservations land in a later settlement."""
    start, end = june
    first = await service.create_draft(CLUB, start, end, "admin", now)
    late = _reservation(4, start + timedelta(days=20), 70_000)
    await reservation_repo.create_paid(late)

    second = await service.create_draft(CLUB, start, end, "admin", now)

    assert second.success is True
    assert second.settlement.reservation_ids == (late.id,)
    assert second.settlement.totals.net_amount == 70_000
    assert not set(first.settlement.reservation_ids) & set(second.settlement.reservation_ids)


@pytest.mark.asyncio
async def test_draft_notes_editable(service, june, now):
    """Test editing notes before lock."""
    start, end = june
    settlement = (await service.create_draft(CLUB, start, end, "admin", now)).settlement

    updated = await service.update_notes(settlement.id, "admin", "adjusted after call")

    assert updated.success is True
    assert updated.settlement.notes == "adjusted after call"


@pytest.mark.asyncio
async def test_unknown_settlement(service, now):
    """Test transitions on a missing settlement."""
    result = await service.confirm("missing", "admin", now)

    assert result.success is False


@pytest.mark.asyncio
async def test_invalid_period_rejected(service, now):
    """Test that an inverted period is refused."""
    start = datetime(2025, 7, 1, tzinfo=timezone.utc)

    result = await service.create_draft(CLUB, start, start - timedelta(days=1), "admin", now)

    assert result.success is False
    assert result.preview.validation_errors


class _FailingSettlementRepository(InMemorySettlementRepository):
    """Fails the first settlement insert."""

    def __init__(self):
        super().__init__()
        self.failures_left = 1

    async def create(self, settlement):
        if self.failures_left:
            self.failures_left -= 1
            raise PersistenceError("connection lost")
        return await super().create(settlement)


@pytest.mark.asyncio
async def test_failed_create_releases_reservations(reservation_repo, june, now):
    """Test that a settlement that could not be stored leaves nothing bound."""
    start, end = june
    service = SettlementFlowService(reservation_repo, _FailingSettlementRepository())

    failed = await service.create_draft(CLUB, start, end, "admin", now)

    assert failed.success is False
    assert all(r.settlement_id is None for r in await reservation_repo.list_all())
    preview = await service.preview(CLUB, start, end)
    assert preview.included_count == 3
    assert preview.already_settled_count == 0

    retried = await service.create_draft(CLUB, start, end, "admin", now)

    assert retried.success is True
    assert retried.settlement.totals.net_amount == 220_000
