from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    admin_email: Optional[str] = Field(None, alias="ADMIN_EMAIL")
    admin_password: Optional[str] = Field(None, alias="ADMIN_PASSWORD")

    # Class lifecycle
    auto_end_minutes: int = Field(105, alias="AUTO_END_MINUTES")
    refresh_interval_seconds: int = Field(60, alias="REFRESH_INTERVAL_SECONDS")
    auto_refresh_enabled: bool = Field(True, alias="AUTO_REFRESH_ENABLED")

    # External player; "/live/" or "/rec/" plus the encoded stream URL is appended
    player_base_url: str = Field(
        "https://edumastervideoplarerwatch.netlify.app", alias="PLAYER_BASE_URL"
    )

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
