"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings so gateway credentials live in one place.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 5.0
    write: float = 5.0
    total: float = 10.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class ZarinpalSettings(BaseModel):
    merchant_id: Optional[str] = None
    sandbox: bool = True
    api_base: str = "https://api.zarinpal.com/pg/v4/payment"
    sandbox_api_base: str = "https://sandbox.zarinpal.com/pg/v4/payment"
    start_pay_url: str = "https://www.zarinpal.com/pg/StartPay"
    sandbox_start_pay_url: str = "https://sandbox.zarinpal.com/pg/StartPay"
    # Domain amounts are Toman; the gateway expects Rial
    amount_multiplier: int = 10


class SimulatorSettings(BaseModel):
    enabled: bool = True
    amount_multiplier: int = 10
    payment_url: str = "http://localhost:8000/api/v1/enrollments/test-payment"


class PaymentSettings(BaseSettings):
    default_provider: str = Field(default="simulator", validation_alias="PAYMENT__DEFAULT_PROVIDER")
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)

    zarinpal: ZarinpalSettings = Field(default_factory=ZarinpalSettings)
    simulator: SimulatorSettings = Field(default_factory=SimulatorSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
