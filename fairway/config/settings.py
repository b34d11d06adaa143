"""Configuration settings loaded from environment variables."""

from decimal import Decimal
from typing import TYPE_CHECKING

from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from fairway.models.policy import CancellationPolicyConfig
    from fairway.models.pricing import PricingRules
    from fairway.models.settlement import SettlementConfig


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="FAIRWAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "fairway"
    environment: str = "development"

    # Logging
    log_level: str = "INFO"

    # Redis (tee-time booking lock)
    redis_url: str = "redis://localhost:6379/0"
    redis_lock_ttl_seconds: int = 5

    # Stripe (refunds)
    stripe_secret_key: str = ""

    # Cancellation policy
    default_policy_version: str = "STANDARD_V2"
    cancel_cutoff_hours: int = 24
    no_show_grace_minutes: int = 30

    # Pricing governance
    max_discount_rate: Decimal = Decimal("0.40")
    price_round_to: int = 100
    min_price: int = 0
    nearby_radius_km: float = 15.0

    # Settlements
    commission_rate: Decimal = Decimal("0.10")

    def pricing_rules(self) -> "PricingRules":
        """Pricing rules with the governance knobs from the environment."""
        from fairway.models.pricing import DEFAULT_PRICING_RULES

        return DEFAULT_PRICING_RULES.model_copy(
            update={
                "max_discount_rate": self.max_discount_rate,
                "round_to": self.price_round_to,
                "min_price": self.min_price,
                "nearby_radius_km": self.nearby_radius_km,
            }
        )

    def policy_config(self) -> "CancellationPolicyConfig":
        """Resolve the default policy version and apply overrides.

        A refund tier that starts at the policy's own cutoff moves with the
        overridden cutoff, so cancelling above the cutoff still refunds.
        """
        from fairway.models.policy import CancellationPolicyConfig
        from fairway.services.cancellation_policy import resolve_policy

        policy = resolve_policy(self.default_policy_version)
        refund_tiers = tuple(
            tier.model_copy(update={"min_hours_before": self.cancel_cutoff_hours})
            if tier.min_hours_before == policy.cancel_cutoff_hours
            else tier
            for tier in policy.refund_tiers
        )
        return CancellationPolicyConfig.model_validate(
            {
                **policy.model_dump(),
                "cancel_cutoff_hours": self.cancel_cutoff_hours,
                "no_show_grace_minutes": self.no_show_grace_minutes,
                "refund_tiers": refund_tiers,
            }
        )

    def settlement_config(self) -> "SettlementConfig":
        """Settlement config carrying the configured commission rate."""
        from fairway.models.settlement import SettlementConfig

        return SettlementConfig(commission_rate=self.commission_rate)


def load_settings() -> Settings:
    """Load and validate settings from environment."""
    return Settings()
