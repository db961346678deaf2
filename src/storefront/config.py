"""Runtime settings read from the environment."""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    environment: str
    store_base_url: str
    currency: str
    stripe_secret_key: str
    stripe_webhook_secret: str
    nowpayments_api_key: str
    nowpayments_ipn_secret: str
    nowpayments_api_url: str
    ledger_max_retries: int

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=os.getenv("PROTEAN_ENV", "development").lower(),
            store_base_url=os.getenv("STORE_BASE_URL", "http://localhost:8000").rstrip("/"),
            currency=os.getenv("STORE_CURRENCY", "cad").lower(),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET", ""),
            nowpayments_api_key=os.getenv("NOWPAYMENTS_API_KEY", ""),
            nowpayments_ipn_secret=os.getenv("NOWPAYMENTS_IPN_SECRET", ""),
            nowpayments_api_url=os.getenv("NOWPAYMENTS_API_URL", "https://api.nowpayments.io/v1").rstrip("/"),
            ledger_max_retries=int(os.getenv("LEDGER_MAX_RETRIES", "3")),
        )


def get_settings() -> Settings:
    return Settings.from_env()
