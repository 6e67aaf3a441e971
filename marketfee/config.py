# marketfee/config.py
import os
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # === General ===
    app_env: str = "local"  # local | development | production

    # === Pricing ===
    currency: str = Field("VND", description="Settlement currency (whole units, no minor units)")
    catalog_path: Optional[str] = Field(None, description="YAML rule catalog; None = packaged default")
    allow_zero_weight: bool = Field(
        False, description="Accept shipments with weight 0 kg (first bracket applies)"
    )
    cod_payment_methods: List[str] = ["COD"]
    settle_max_workers: int = 4

    # === Logging ===
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_rotation: str = "1 day"
    log_retention: str = "30 days"
    log_to_file: bool = False

    # === Pydantic Settings config ===
    model_config = SettingsConfigDict(
        env_prefix="MARKETFEE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton Settings instance with simple env overrides."""
    s = Settings()

    env = os.getenv("ENVIRONMENT", s.app_env).lower()
    if env == "production":
        s.log_level = "WARNING"
        s.log_to_file = True
    elif env == "development":
        s.log_level = "DEBUG"

    return s
