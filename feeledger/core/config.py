from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    cors_origins: str = Field("*", alias="CORS_ORIGINS")

    # Stale-version conflicts on the student row are retried this many times in total
    ledger_max_retries: int = Field(3, alias="LEDGER_MAX_RETRIES", ge=1)
    # Recompute fee_paid from completed payment history on every payment write
    ledger_resum_on_write: bool = Field(False, alias="LEDGER_RESUM_ON_WRITE")

    default_tenant_name: Optional[str] = Field(None, alias="DEFAULT_TENANT_NAME")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def cors_origin_list(self) -> list:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
