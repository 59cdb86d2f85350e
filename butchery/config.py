from decimal import Decimal
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class AppConfig(BaseSettings):
    """Storefront configuration using Pydantic BaseSettings.

    Loads configuration from environment variables and .env file (if present).
    Money values are Decimals so ledger arithmetic never goes through floats.
    Defaults mirror the admin console's store settings.
    """
    # Application
    app_env: str = "local"
    log_level: str = "DEBUG"

    # Storage
    data_dir: str = "sample_data"
    storage_backend: Literal["memory", "json"] = "memory"

    # Pricing
    currency: str = "AED"
    vat_rate: Decimal = Decimal("0.05")
    default_delivery_fee: Decimal = Decimal("15")
    free_delivery_threshold: Optional[Decimal] = Decimal("200")
    min_order_value: Decimal = Decimal("50")

    # Wallet
    welcome_bonus_enabled: bool = True
    welcome_bonus: Decimal = Decimal("50")
    cashback_enabled: bool = True
    cashback_rate: Decimal = Decimal("0.02")
    refund_destination: Literal["wallet", "gateway"] = "wallet"

    # Loyalty
    loyalty_enabled: bool = True
    points_per_aed: int = 1
    points_to_aed_rate: int = 10  # 10 points = 1 AED

    # Notifications
    notification_workers: int = 0  # 0 dispatches inline

    # Seed data settings
    default_seed_customers: int = 10
    default_seed_orders: int = 25
    default_seed_value: int = 42

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

_config: Optional[AppConfig] = None

def get_config() -> AppConfig:
    """Return the AppConfig instance (singleton pattern)."""
    global _config
    if _config is None:
        _config = AppConfig()
    return _config

def set_config_for_test(**kwargs):
    """For testing only: override the AppConfig instance with new values."""
    global _config
    _config = AppConfig(**kwargs)
