"""Runtime settings loaded from the environment (prefix ``ZKPICKUP_``) or a .env file."""

import logging
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from zkpickup.exceptions import ConfigurationError, InvalidAddressError
from zkpickup.utils.encoding import normalize_address

# Rates are expressed in basis points out of this denominator.
FEE_DENOMINATOR = 10_000
MAX_PLATFORM_FEE_RATE = 500  # 5%
MAX_COMMISSION_RATE = 1_000  # 10%
MAX_PICKUP_DAYS_LIMIT = 30
MAX_AGE_REQUIREMENT = 150
SECONDS_PER_DAY = 86_400

DEFAULT_OWNER = "0x" + "0" * 39 + "1"


class Settings(BaseSettings):
    """Pickup system settings."""

    model_config = SettingsConfigDict(env_prefix="ZKPICKUP_", env_file=".env", extra="ignore")

    database_url: str = "sqlite:///zk_pickup.db"
    owner_address: str = DEFAULT_OWNER
    platform_treasury: Optional[str] = None

    platform_fee_rate_bps: int = Field(default=100, ge=0)
    max_pickup_days: int = Field(default=MAX_PICKUP_DAYS_LIMIT, ge=1)

    verifier_backend: Literal["development", "snarkjs"] = "development"
    verification_key_path: Optional[str] = None
    snarkjs_binary: str = "snarkjs"
    snarkjs_timeout: float = Field(default=30.0, gt=0)
    dev_proof_key: Optional[str] = None

    jwt_secret: str = "your-secret-key-change-in-production-12345"
    jwt_algorithm: str = "HS256"
    access_token_expire_hours: int = 24

    log_level: str = "INFO"

    @field_validator("owner_address", "platform_treasury")
    @classmethod
    def _check_address(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            return normalize_address(value)
        except InvalidAddressError as e:
            raise ValueError(str(e))

    @model_validator(mode="after")
    def _check_caps(self) -> "Settings":
        if self.platform_fee_rate_bps > MAX_PLATFORM_FEE_RATE:
            raise ValueError(f"platform_fee_rate_bps may not exceed {MAX_PLATFORM_FEE_RATE}")
        if self.max_pickup_days > MAX_PICKUP_DAYS_LIMIT:
            raise ValueError(f"max_pickup_days may not exceed {MAX_PICKUP_DAYS_LIMIT}")
        if self.verifier_backend == "snarkjs" and not self.verification_key_path:
            raise ValueError("verification_key_path is required for the snarkjs backend")
        return self

    @property
    def treasury(self) -> str:
        """Address credited with platform fees."""
        return self.platform_treasury or self.owner_address


def check_fee_caps(max_platform_fee_rate: int, max_commission_rate: int) -> None:
    """Seller payouts can never go negative within the caps."""
    if max_platform_fee_rate + max_commission_rate >= FEE_DENOMINATOR:
        raise ConfigurationError(
            f"Fee caps {max_platform_fee_rate} + {max_commission_rate} bps leave no seller share"
        )


check_fee_caps(MAX_PLATFORM_FEE_RATE, MAX_COMMISSION_RATE)


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process."""
    try:
        return Settings()
    except ValueError as e:
        raise ConfigurationError(f"Invalid settings: {e}")


def configure_logging(settings: Settings) -> None:
    """Configure root logging from settings."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
