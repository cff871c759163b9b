from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Identity holding the admin role (resolve / cancel / withdraw fees)
    ADMIN_ID: str = "admin"

    # Protocol fee on every bet, in basis points
    FEE_BPS: int = Field(default=200, ge=0, lt=10_000)

    # Implied decimals of fixed-point amounts (display / parsing only)
    TOKEN_DECIMALS: int = Field(default=18, ge=0, le=36)

    # Upper bound on per-market lock acquisition
    LOCK_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)

    MIN_DURATION_SECONDS: int = Field(default=1, ge=1)

    # App
    APP_NAME: str = "Pooled Prediction Market Engine"
    LOG_LEVEL: str = "INFO"


settings = Settings()
