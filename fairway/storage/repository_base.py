"""Repository base interfaces."""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Generic, Iterable, Optional, TypeVar

from fairway.models.reservation import ReservationRecord, ReservationStatus
from fairway.models.settlement import Settlement
from fairway.models.tee_time import TeeTimeSnapshot
from fairway.models.user import UserSnapshot

T = TypeVar("T")
K = TypeVar("K")


class RepositoryBase(ABC, Generic[K, T]):
    """Base repository interface for keyed entities."""

    @abstractmethod
    async def get_by_id(self, id: K) -> Optional[T]:
        """Retrieve entity by ID."""
        pass

    @abstractmethod
    async def update(self, entity: T) -> T:
        """Replace an existing entity."""
        pass


class TeeTimeRepository(RepositoryBase[int, TeeTimeSnapshot]):
    """Tee time storage."""

    @abstractmethod
    async def add(self, tee_time: TeeTimeSnapshot) -> TeeTimeSnapshot:
        """Store a new tee time."""
        pass

    @abstractmethod
    async def mark_booked_if_open(self, tee_time_id: int) -> bool:
        """OPEN -> BOOKED only if still OPEN. Returns whether it changed."""
        pass

    @abstractmethod
    async def reopen(self, tee_time_id: int) -> bool:
        """BOOKED -> OPEN after a cancellation. Returns whether it changed."""
        pass


class UserRepository(RepositoryBase[str, UserSnapshot]):
    """User storage."""

    @abstractmethod
    async def add(self, user: UserSnapshot) -> UserSnapshot:
        """Store a new user."""
        pass

    @abstractmethod
    async def update_if_no_show_count(self, entity: UserSnapshot, expected: int) -> bool:
        """Replace the user only if its stored ``no_show_count`` is still ``expected``."""
        pass


class ReservationRepository(RepositoryBase[str, ReservationRecord]):
    """Reservation storage."""

    @abstractmethod
    async def create_paid(self, reservation: ReservationRecord) -> ReservationRecord:
        """Store a PAID reservation.

        Raises DoubleBookingError if the tee time already has one.
        """
        pass

    @abstractmethod
    async def update_if_status(
        self, entity: ReservationRecord, expected: ReservationStatus
    ) -> bool:
        """Replace the reservation only if its stored status is still ``expected``.

        Returns whether it changed.
        """
        pass

    @abstractmethod
    async def delete(self, id: str) -> bool:
        """Delete a reservation by ID."""
        pass

    @abstractmethod
    async def list_for_club(
        self, golf_club_id: int, start: datetime, end: datetime
    ) -> list[ReservationRecord]:
        """Reservations of a club with ``start <= tee_off < end``."""
        pass

    @abstractmethod
    async def bind_to_settlement(
        self, reservations: Iterable[ReservationRecord], settlement_id: str
    ) -> list[ReservationRecord]:
        """Set ``settlement_id`` on reservations that are still unbound.

        Raises AlreadySettledError if any of them was bound in the meantime;
        in that case nothing is written.
        """
        pass

    @abstractmethod
    async def unbind_from_settlement(self, settlement_id: str) -> int:
        """Clear ``settlement_id`` wherever it is set. Returns how many changed."""
        pass


class SettlementRepository(RepositoryBase[str, Settlement]):
    """Settlement storage."""

    @abstractmethod
    async def create(self, settlement: Settlement) -> Settlement:
        """Store a new settlement."""
        pass

    @abstractmethod
    async def list_for_club(self, golf_club_id: int) -> list[Settlement]:
        """All settlements of a club, newest period first."""
        pass


class TeeTimeLock(ABC):
    """Exclusive per-tee-time lock held around a booking."""

    @abstractmethod
    def acquire(self, tee_time_id: int) -> AbstractAsyncContextManager[bool]:
        """Async context manager yielding whether the lock was acquired."""
        pass
