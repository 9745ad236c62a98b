"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings so gateway credentials and outbound
sync targets can be loaded (and overridden in tests) independently.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    connect: float = 3.0
    read: float = 10.0
    write: float = 10.0
    total: float = 15.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class RazorpaySettings(BaseModel):
    key_id: Optional[str] = None
    key_secret: Optional[str] = None
    # host only; the SDK appends the API version path
    base_url: str = "https://api.razorpay.com"
    default_currency: str = "INR"


class AdminPortalSettings(BaseModel):
    url: str = "http://localhost:5002"
    api_key: str = ""
    timeout: float = 10.0
    # Pause between posts during a batch resync
    batch_delay: float = 0.1


class LedgerSettings(BaseModel):
    transaction_prefix: str = "txn_"
    pending_retention_days: int = 7


class PaymentSettings(BaseSettings):
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)

    razorpay: RazorpaySettings = Field(default_factory=RazorpaySettings)
    admin_portal: AdminPortalSettings = Field(default_factory=AdminPortalSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
