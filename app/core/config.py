from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Fixed civil offset used for every attendance day (+05:30, IST).
    attendance_utc_offset_minutes: int = Field(330, alias="ATTENDANCE_UTC_OFFSET_MINUTES")
    attendance_only_today: bool = Field(True, alias="ATTENDANCE_ONLY_TODAY")

    assign_max_retries: int = Field(3, alias="ASSIGN_MAX_RETRIES")

    notify_queue_size: int = Field(100, alias="NOTIFY_QUEUE_SIZE")
    notify_heartbeat_seconds: float = Field(25.0, alias="NOTIFY_HEARTBEAT_SECONDS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    cors_origins: str = Field("*", alias="CORS_ORIGINS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True


settings = Settings()
