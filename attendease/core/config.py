from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")
    auto_create_tables: bool = Field(True, alias="AUTO_CREATE_TABLES")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    # 7 days
    access_token_expire_minutes: int = Field(60 * 24 * 7, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    otp_expire_minutes: int = Field(10, alias="OTP_EXPIRE_MINUTES")
    otp_max_attempts: int = Field(3, alias="OTP_MAX_ATTEMPTS")
    otp_sweep_interval_seconds: int = Field(300, alias="OTP_SWEEP_INTERVAL_SECONDS")

    smtp_host: Optional[str] = Field(None, alias="SMTP_HOST")
    smtp_port: int = Field(587, alias="SMTP_PORT")
    smtp_user: Optional[str] = Field(None, alias="SMTP_USER")
    smtp_password: Optional[str] = Field(None, alias="SMTP_PASSWORD")
    smtp_from: Optional[str] = Field(None, alias="SMTP_FROM")

    cors_origins: List[str] = Field(["http://localhost:5173"], alias="CORS_ORIGINS")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    admin_email: str = Field("admin@example.com", alias="ADMIN_EMAIL")
    admin_password: str = Field("admin123", alias="ADMIN_PASSWORD")
    admin_name: str = Field("Admin User", alias="ADMIN_NAME")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
