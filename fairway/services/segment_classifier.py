"""Segment classifier.

Derives a user's behavioral segment from booking-history aggregates.
Runs periodically; the pricing engine only ever reads the stored result.
"""

from pydantic import BaseModel, ConfigDict

from fairway.models.user import BookingHistory, Segment, UserSnapshot


class SegmentRules(BaseModel):
    """Thresholds for segment classification."""

    model_config = ConfigDict(frozen=True)

    risk_no_show_count: int = 2
    risk_no_show_rate: float = 0.20
    vip_min_bookings: int = 10
    vip_min_spent: int = 1_000_000


DEFAULT_SEGMENT_RULES = SegmentRules()


def classify_segment(
    history: BookingHistory, rules: SegmentRules = DEFAULT_SEGMENT_RULES
) -> Segment:
    """Classify a user. Risk outranks loyalty."""
    if history.no_show_count >= rules.risk_no_show_count:
        return Segment.RISK
    if history.total_bookings > 0 and history.no_show_rate >= rules.risk_no_show_rate:
        return Segment.RISK
    if history.total_bookings == 0:
        return Segment.FUTURE
    if (
        history.total_bookings >= rules.vip_min_bookings
        and history.total_spent >= rules.vip_min_spent
    ):
        return Segment.VIP
    return Segment.ACTIVE


def reclassify(
    user: UserSnapshot,
    history: BookingHistory | None = None,
    rules: SegmentRules = DEFAULT_SEGMENT_RULES,
) -> UserSnapshot:
    """Return a copy of ``user`` with a freshly computed segment."""
    history = history or BookingHistory.from_user(user)
    return user.model_copy(update={"segment": classify_segment(history, rules)})
