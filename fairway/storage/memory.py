"""In-memory repositories.

Each repository guards its dict with an ``asyncio.Lock`` so that the
conditional updates (``mark_booked_if_open``, ``create_paid``,
``update_if_status``, ``bind_to_settlement``) are atomic with respect
to other tasks on the same event loop, the way a conditional
``UPDATE ... WHERE`` is in SQL.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, Iterable, Optional

from fairway.errors import AlreadySettledError, DoubleBookingError, PersistenceError
from fairway.models.reservation import ReservationRecord, ReservationStatus
from fairway.models.settlement import Settlement
from fairway.models.tee_time import TeeTimeSnapshot, TeeTimeStatus
from fairway.models.user import UserSnapshot
from fairway.storage.repository_base import (
    ReservationRepository,
    SettlementRepository,
    TeeTimeLock,
    TeeTimeRepository,
    UserRepository,
)


class InMemoryTeeTimeRepository(TeeTimeRepository):
    """Tee times held in a dict."""

    def __init__(self, tee_times: Iterable[TeeTimeSnapshot] = ()):
        self._items: dict[int, TeeTimeSnapshot] = {t.id: t for t in tee_times}
        self._lock = asyncio.Lock()

    async def get_by_id(self, id: int) -> Optional[TeeTimeSnapshot]:
        return self._items.get(id)

    async def add(self, tee_time: TeeTimeSnapshot) -> TeeTimeSnapshot:
        async with self._lock:
            self._items[tee_time.id] = tee_time
        return tee_time

    async def update(self, entity: TeeTimeSnapshot) -> TeeTimeSnapshot:
        async with self._lock:
            if entity.id not in self._items:
                raise PersistenceError(f"Tee time {entity.id} does not exist")
            self._items[entity.id] = entity
        return entity

    async def _swap_status(
        self, tee_time_id: int, expected: TeeTimeStatus, new: TeeTimeStatus
    ) -> bool:
        async with self._lock:
            current = self._items.get(tee_time_id)
            if current is None or current.status != expected:
                return False
            self._items[tee_time_id] = current.model_copy(update={"status": new})
            return True

    async def mark_booked_if_open(self, tee_time_id: int) -> bool:
        return await self._swap_status(tee_time_id, TeeTimeStatus.OPEN, TeeTimeStatus.BOOKED)

    async def reopen(self, tee_time_id: int) -> bool:
        return await self._swap_status(tee_time_id, TeeTimeStatus.BOOKED, TeeTimeStatus.OPEN)


class InMemoryUserRepository(UserRepository):
    """Users held in a dict."""

    def __init__(self, users: Iterable[UserSnapshot] = ()):
        self._items: dict[str, UserSnapshot] = {u.id: u for u in users}
        self._lock = asyncio.Lock()

    async def get_by_id(self, id: str) -> Optional[UserSnapshot]:
        return self._items.get(id)

    async def add(self, user: UserSnapshot) -> UserSnapshot:
        self._items[user.id] = user
        return user

    async def update(self, entity: UserSnapshot) -> UserSnapshot:
        if entity.id not in self._items:
            raise PersistenceError(f"User {entity.id} does not exist")
        self._items[entity.id] = entity
        return entity

    async def update_if_no_show_count(self, entity: UserSnapshot, expected: int) -> bool:
        async with self._lock:
            current = self._items.get(entity.id)
            if current is None:
                raise PersistenceError(f"User {entity.id} does not exist")
            if current.no_show_count != expected:
                return False
            self._items[entity.id] = entity
            return True


class InMemoryReservationRepository(ReservationRepository):
    """Reservations held in a dict, with a one-PAID-per-tee-time constraint."""

    def __init__(self, reservations: Iterable[ReservationRecord] = ()):
        self._items: dict[str, ReservationRecord] = {r.id: r for r in reservations}
        self._lock = asyncio.Lock()

    async def get_by_id(self, id: str) -> Optional[ReservationRecord]:
        return self._items.get(id)

    async def create_paid(self, reservation: ReservationRecord) -> ReservationRecord:
        async with self._lock:
            if any(
                r.tee_time_id == reservation.tee_time_id
                and r.status == ReservationStatus.PAID
                for r in self._items.values()
            ):
                raise DoubleBookingError(reservation.tee_time_id)
            self._items[reservation.id] = reservation
        return reservation

    async def update_if_status(
        self, entity: ReservationRecord, expected: ReservationStatus
    ) -> bool:
        async with self._lock:
            current = self._items.get(entity.id)
            if current is None:
                raise PersistenceError(f"Reservation {entity.id} does not exist")
            if current.status != expected:
                return False
            if current.settlement_id not in (None, entity.settlement_id):
                raise AlreadySettledError(entity.id, current.settlement_id)
            self._items[entity.id] = entity
            return True

    async def update(self, entity: ReservationRecord) -> ReservationRecord:
        async with self._lock:
            current = self._items.get(entity.id)
            if current is None:
                raise PersistenceError(f"Reservation {entity.id} does not exist")
            if current.settlement_id not in (None, entity.settlement_id):
                raise AlreadySettledError(entity.id, current.settlement_id)
            self._items[entity.id] = entity
        return entity

    async def delete(self, id: str) -> bool:
        async with self._lock:
            return self._items.pop(id, None) is not None

    async def list_for_club(
        self, golf_club_id: int, start: datetime, end: datetime
    ) -> list[ReservationRecord]:
        return [
            r
            for r in self._items.values()
            if r.golf_club_id == golf_club_id and start <= r.tee_off < end
        ]

    async def list_all(self) -> list[ReservationRecord]:
        return list(self._items.values())

    async def bind_to_settlement(
        self, reservations: Iterable[ReservationRecord], settlement_id: str
    ) -> list[ReservationRecord]:
        reservations = list(reservations)
        async with self._lock:
            for reservation in reservations:
                stored = self._items.get(reservation.id)
                if stored is None:
                    raise PersistenceError(f"Reservation {reservation.id} does not exist")
                if stored.settlement_id not in (None, settlement_id):
                    raise AlreadySettledError(stored.id, stored.settlement_id)

            bound = []
            for reservation in reservations:
                updated = self._items[reservation.id].evolve(settlement_id=settlement_id)
                self._items[updated.id] = updated
                bound.append(updated)
        return bound

    async def unbind_from_settlement(self, settlement_id: str) -> int:
        async with self._lock:
            bound = [r for r in self._items.values() if r.settlement_id == settlement_id]
            for reservation in bound:
                self._items[reservation.id] = reservation.evolve(settlement_id=None)
        return len(bound)


class InMemorySettlementRepository(SettlementRepository):
    """Settlements held in a dict."""

    def __init__(self):
        self._items: dict[str, Settlement] = {}

    async def get_by_id(self, id: str) -> Optional[Settlement]:
        return self._items.get(id)

    async def create(self, settlement: Settlement) -> Settlement:
        if settlement.id in self._items:
            raise PersistenceError(f"Settlement {settlement.id} already exists")
        self._items[settlement.id] = settlement
        return settlement

    async def update(self, entity: Settlement) -> Settlement:
        if entity.id not in self._items:
            raise PersistenceError(f"Settlement {entity.id} does not exist")
        self._items[entity.id] = entity
        return entity

    async def list_for_club(self, golf_club_id: int) -> list[Settlement]:
        return sorted(
            (s for s in self._items.values() if s.golf_club_id == golf_club_id),
            key=lambda s: s.period_start,
            reverse=True,
        )


class InMemoryTeeTimeLock(TeeTimeLock):
    """Non-blocking per-tee-time lock, same contract as the Redis lock."""

    def __init__(self):
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def acquire(self, tee_time_id: int) -> AsyncGenerator[bool, None]:
        lock = self._locks[tee_time_id]
        if lock.locked():
            yield False
            return
        async with lock:
            yield True
