"""Error taxonomy for the booking core.

Policy outcomes (past cutoff, imminent deal, already cancelled) are never
raised; they come back as result records with ``success=False``. Only
contract violations and collaborator failures are exceptions.
"""

from typing import Optional


class FairwayError(Exception):
    """Base class for all booking-core errors."""


class ValidationError(FairwayError):
    """Raised when a required input is missing or malformed."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class UnknownPolicyVersion(ValidationError):
    """Raised when a policy version string does not name a known policy."""

    def __init__(self, version: str):
        self.version = version
        super().__init__("policy_version", f"Unknown cancellation policy version '{version}'")


class DependencyFailure(FairwayError):
    """Raised when a collaborator (persistence, payment gateway) fails."""

    def __init__(self, dependency: str, message: str, cause: Optional[BaseException] = None):
        self.dependency = dependency
        self.message = message
        self.cause = cause
        super().__init__(f"{dependency}: {message}")


class PersistenceError(DependencyFailure):
    """A repository write or read failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__("persistence", message, cause)


class RefundFailed(DependencyFailure):
    """The payment provider rejected or could not process a refund."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__("refund_gateway", message, cause)


class InvariantViolation(FairwayError):
    """A state that correct callers can never produce was observed."""


class DoubleBookingError(InvariantViolation):
    """A second PAID reservation was attempted for one tee time."""

    def __init__(self, tee_time_id: int):
        self.tee_time_id = tee_time_id
        super().__init__(f"Tee time {tee_time_id} already has a paid reservation")


class SettlementTransitionError(InvariantViolation):
    """A settlement status change that the lifecycle does not allow."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move settlement from {current} to {target}")


class SettlementLockedError(SettlementTransitionError):
    """Any change to a LOCKED settlement."""

    def __init__(self, target: str = "EDIT"):
        super().__init__("LOCKED", target)


class AlreadySettledError(InvariantViolation):
    """A reservation is already bound to another settlement."""

    def __init__(self, reservation_id: str, settlement_id: str):
        self.reservation_id = reservation_id
        self.settlement_id = settlement_id
        super().__init__(
            f"Reservation {reservation_id} already belongs to settlement {settlement_id}"
        )
