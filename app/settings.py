from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DISCORD_TOKEN: str = Field(..., alias="DISCORD_TOKEN")
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./bot.db", alias="DATABASE_URL"
    )  # postgresql+asyncpg://... in production
    DEBUG: bool = Field(default=False, alias="DEBUG")
    DEV_GUILD_ID: Optional[int] = Field(
        default=None, alias="DEV_GUILD_ID"
    )  # sync slash commands to a single guild while developing

    # Guild resources, discovered by name once and then cached by id
    TICKET_CATEGORY_NAME: str = Field(default="Tickets", alias="TICKET_CATEGORY_NAME")
    TRUST_ROLE_NAME: str = Field(default="Trusted Seller", alias="TRUST_ROLE_NAME")
    AUDIT_LOG_CHANNEL_NAME: str = Field(default="bot-logs", alias="AUDIT_LOG_CHANNEL_NAME")

    # Vouch Configuration
    REQUIRED_TRUST_MARKER: str = Field(default="+rep", alias="REQUIRED_TRUST_MARKER")
    RECENT_VOUCH_LIMIT: int = Field(default=3, alias="RECENT_VOUCH_LIMIT")

    # Ticket Configuration
    TICKET_CLOSE_DELAY_SECONDS: float = Field(
        default=5, alias="TICKET_CLOSE_DELAY_SECONDS"
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
