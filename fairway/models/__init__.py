"""Models package - Pydantic domain models."""

from .policy import (
    BookingCheck,
    CancellationCheck,
    CancellationInfo,
    CancellationPolicyConfig,
    CancellationResult,
    NoShowResult,
    PolicyVersion,
    RefundOutcome,
    RefundTier,
    SuspensionRule,
)
from .pricing import (
    DEFAULT_PRICING_RULES,
    BlockReason,
    FactorKind,
    PricingContext,
    PricingFactor,
    PricingResult,
    PricingRules,
    TimeTier,
)
from .reservation import CancelReason, PaymentStatus, ReservationRecord, ReservationStatus
from .settlement import (
    ExcludedReservation,
    ExclusionReason,
    Settlement,
    SettlementConfig,
    SettlementLine,
    SettlementPreview,
    SettlementStatus,
    SettlementTotals,
)
from .tee_time import SkyCondition, TeeTimeSnapshot, TeeTimeStatus, WeatherSnapshot
from .user import BookingHistory, Segment, UserSnapshot

__all__ = [
    "BookingCheck",
    "CancellationCheck",
    "CancellationInfo",
    "CancellationPolicyConfig",
    "CancellationResult",
    "NoShowResult",
    "PolicyVersion",
    "RefundOutcome",
    "RefundTier",
    "SuspensionRule",
    "DEFAULT_PRICING_RULES",
    "BlockReason",
    "FactorKind",
    "PricingContext",
    "PricingFactor",
    "PricingResult",
    "PricingRules",
    "TimeTier",
    "CancelReason",
    "PaymentStatus",
    "ReservationRecord",
    "ReservationStatus",
    "ExcludedReservation",
    "ExclusionReason",
    "Settlement",
    "SettlementConfig",
    "SettlementLine",
    "SettlementPreview",
    "SettlementStatus",
    "SettlementTotals",
    "SkyCondition",
    "TeeTimeSnapshot",
    "TeeTimeStatus",
    "WeatherSnapshot",
    "BookingHistory",
    "Segment",
    "UserSnapshot",
]
