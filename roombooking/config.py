from functools import lru_cache
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

ENV_FILE_PATH = Path(".env")


class Settings(BaseModel):
    env: str = Field(default="dev", alias="ENV")
    timezone: str = Field(default="Asia/Bangkok", alias="TIMEZONE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(default="", alias="DATABASE_URL")
    postgres_db: str = Field(default="rooms", alias="POSTGRES_DB")
    postgres_user: str = Field(default="rooms", alias="POSTGRES_USER")
    postgres_password: str = Field(default="rooms", alias="POSTGRES_PASSWORD")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")

    jwt_secret: str = Field(default="secret", alias="JWT_SECRET")

    payment_provider: str = Field(default="stub", alias="PAYMENT_PROVIDER")
    payment_currency: str = Field(default="thb", alias="PAYMENT_CURRENCY")
    payment_api_key: str = Field(default="", alias="PAYMENT_API_KEY")
    payment_api_base: str = Field(default="https://api.stripe.com/v1", alias="PAYMENT_API_BASE")
    payment_gateway_timeout_seconds: float = Field(default=10.0, alias="PAYMENT_GATEWAY_TIMEOUT_SECONDS")
    payment_min_amount_minor: int | None = Field(default=None, alias="PAYMENT_MIN_AMOUNT_MINOR")

    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")
    room_sync_interval_seconds: int = Field(default=60, alias="ROOM_SYNC_INTERVAL_SECONDS")

    class Config:
        populate_by_name = True

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            if self.database_url.startswith("postgres://"):
                return "postgresql+psycopg2://" + self.database_url[len("postgres://"):]
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv(dotenv_path=ENV_FILE_PATH, override=False)
    return Settings(**os.environ)
