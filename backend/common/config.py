import logging
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Shared
    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # Telegram
    BOT_TOKEN: str = Field(validation_alias=AliasChoices("BOT_TOKEN", "TELEGRAM_BOT_TOKEN"))
    AUTHORIZED_USER_ID: str = Field(validation_alias=AliasChoices("AUTHORIZED_USER_ID", "USER_ID"))
    TELEGRAM_API_BASE: str = "https://api.telegram.org"
    TELEGRAM_WEBHOOK_SECRET: Optional[str] = None
    TELEGRAM_TIMEOUT_SECONDS: float = 10.0

    # DynamoDB
    TASKS_TABLE: str = "tasks"
    TASKS_STATUS_INDEX: Optional[str] = None
    AWS_REGION: Optional[str] = None
    DYNAMODB_ENDPOINT_URL: Optional[str] = None
    DYNAMODB_MAX_ATTEMPTS: int = 1
    DYNAMODB_TIMEOUT_SECONDS: float = 5.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def authorized_user_id(self) -> str:
        return self.AUTHORIZED_USER_ID.strip()


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level)
    # botocore is chatty at INFO.
    logging.getLogger("botocore").setLevel(max(level, logging.WARNING))
