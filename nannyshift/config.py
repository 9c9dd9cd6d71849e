"""Runtime configuration sourced from environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from nannyshift.surcharge import NightSurchargeRule


class Settings(BaseSettings):
    """Rates, fees and polling knobs.

    Parent quotes and caregiver pay are denominated separately and are
    configured independently, even though the night rule is the same.
    """

    parent_hourly_rate: float = Field(10.0, validation_alias="NANNYSHIFT_PARENT_HOURLY_RATE")
    parent_currency: str = Field("EUR", validation_alias="NANNYSHIFT_PARENT_CURRENCY")
    parent_night_fee: float = Field(10.0, validation_alias="NANNYSHIFT_PARENT_NIGHT_FEE")

    caregiver_hourly_rate: float = Field(31.25, validation_alias="NANNYSHIFT_CAREGIVER_HOURLY_RATE")
    caregiver_currency: str = Field("MAD", validation_alias="NANNYSHIFT_CAREGIVER_CURRENCY")
    caregiver_night_fee: float = Field(100.0, validation_alias="NANNYSHIFT_CAREGIVER_NIGHT_FEE")

    poll_interval_seconds: float = Field(15.0, validation_alias="NANNYSHIFT_POLL_INTERVAL_SECONDS")
    max_new_toasts: int = Field(3, validation_alias="NANNYSHIFT_MAX_NEW_TOASTS")
    max_toasts: int = Field(5, validation_alias="NANNYSHIFT_MAX_TOASTS")

    timezone: str = Field("Africa/Casablanca", validation_alias="NANNYSHIFT_TIMEZONE")  # wall clock used for clock-in/out
    environment: str = Field("development", validation_alias="NANNYSHIFT_ENVIRONMENT")
    log_level: str = Field("INFO", validation_alias="NANNYSHIFT_LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    def parent_rule(self) -> NightSurchargeRule:
        return NightSurchargeRule(
            fee_per_day=self.parent_night_fee, currency=self.parent_currency
        )

    def caregiver_rule(self) -> NightSurchargeRule:
        return NightSurchargeRule(
            fee_per_day=self.caregiver_night_fee,
            currency=self.caregiver_currency,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
