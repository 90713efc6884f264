"""Application configuration via environment variables."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./connect_payments.db"
    log_level: str = "INFO"

    # Processor
    provider_backend: str = "stripe"  # "stripe" or "mock"
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_api_timeout_seconds: float = 10.0
    processor_max_retries: int = 3

    # Platform policy
    platform_country: str = "US"
    platform_fee_rate: Decimal = Decimal("0.05")
    default_minimum_charge: int = 50  # minor units
    fallback_to_on_behalf_of: bool = True

    # Onboarding links
    public_base_url: str = "http://localhost:3000"

    # Mock provider
    mock_failure_rate: float = 0.0
    mock_latency_ms: int = 0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()


@dataclass(frozen=True)
class PaymentConfig:
    """
    Policy knobs consumed by the orchestrator and reconciler.

    Built from Settings in the app, or directly in tests so nothing has to
    touch the process environment.
    """

    platform_country: str = "US"
    platform_fee_rate: Decimal = Decimal("0.05")
    default_minimum_charge: int = 50
    minimum_charge_overrides: Mapping[str, int] = field(default_factory=dict)
    fallback_to_on_behalf_of: bool = True
    onboarding_refresh_url: str = "http://localhost:3000/settings/payments?refresh=true"
    onboarding_return_url: str = "http://localhost:3000/settings/payments?success=true"
    max_retries: int = 3

    def __post_init__(self) -> None:
        if not Decimal(0) <= self.platform_fee_rate <= Decimal(1):
            raise ValueError(f"platform_fee_rate must be within [0, 1]: {self.platform_fee_rate}")
        object.__setattr__(self, "platform_country", self.platform_country.strip().upper())

    @classmethod
    def from_settings(cls, s: Optional[Settings] = None) -> "PaymentConfig":
        s = s or settings
        base = s.public_base_url.rstrip("/")
        return cls(
            platform_country=s.platform_country,
            platform_fee_rate=Decimal(str(s.platform_fee_rate)),
            default_minimum_charge=s.default_minimum_charge,
            fallback_to_on_behalf_of=s.fallback_to_on_behalf_of,
            onboarding_refresh_url=f"{base}/settings/payments?refresh=true",
            onboarding_return_url=f"{base}/settings/payments?success=true",
            max_retries=s.processor_max_retries,
        )
