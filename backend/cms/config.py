import os
from functools import lru_cache
from typing import Optional

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings
from sqlalchemy.engine import URL

from cms.core.exceptions import ConfigurationError
from cms.utils.durations import parse_duration

APP_ENV = os.getenv("APP_ENV", "development")


class Settings(BaseSettings):
    APP_ENV: str = "development"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"
    CORS_ORIGIN: str = "*"

    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_IN: str = "1d"
    JWT_AUDIENCE: Optional[str] = None

    DATABASE_URL: Optional[str] = None
    DB_DRIVER: str = "mysql+pymysql"
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USERNAME: str
    DB_PASSWORD: str
    DB_NAME: str

    SSO_SERVER_URL: str
    SSO_CLIENT_ID: str
    SSO_CLIENT_SECRET: str

    METADATA_SERVER_URL: str
    METADATA_API_KEY: str

    SYNC_INTERVAL_MINUTES: int = 60
    HEALTHCHECK_TIMEOUT_SECONDS: float = 3.0

    class Config:
        env_file = (".env", f".env.{APP_ENV}")
        extra = "ignore"

    @field_validator(
        "JWT_SECRET",
        "DB_USERNAME",
        "DB_PASSWORD",
        "DB_NAME",
        "SSO_SERVER_URL",
        "SSO_CLIENT_ID",
        "SSO_CLIENT_SECRET",
        "METADATA_SERVER_URL",
        "METADATA_API_KEY",
    )
    @classmethod
    def validate_required(cls, value: str):
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("must not be empty")
        return cleaned

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_secret_length(cls, value: str):
        if len(value) < 32:
            raise ValueError("must be at least 32 characters long")
        return value

    @field_validator("PORT", "DB_PORT")
    @classmethod
    def validate_port(cls, value: int):
        if not 1 <= value <= 65535:
            raise ValueError("must be a port number between 1 and 65535")
        return value

    @field_validator("JWT_EXPIRES_IN")
    @classmethod
    def validate_expiry(cls, value: str):
        parse_duration(value)
        return value

    @field_validator("SYNC_INTERVAL_MINUTES")
    @classmethod
    def validate_sync_interval(cls, value: int):
        if value <= 0:
            raise ValueError("must be greater than 0")
        return value

    @field_validator("SSO_SERVER_URL", "METADATA_SERVER_URL")
    @classmethod
    def strip_trailing_slash(cls, value: str):
        return value.rstrip("/")

    def sqlalchemy_url(self):
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return URL.create(
            drivername=self.DB_DRIVER,
            username=self.DB_USERNAME,
            password=self.DB_PASSWORD,
            host=self.DB_HOST,
            port=self.DB_PORT,
            database=self.DB_NAME,
            query={"charset": "utf8mb4"},
        )

    def cors_origins(self) -> list[str]:
        if self.CORS_ORIGIN.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGIN.split(",") if origin.strip()]


def load_settings(**overrides) -> Settings:
    """Build settings, turning validation failures into a fatal ConfigurationError."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        problems = []
        for err in exc.errors():
            field = ".".join(str(part) for part in err.get("loc", [])) or "settings"
            if err.get("type") == "missing":
                problems.append(f"{field} is required")
            else:
                problems.append(f"{field}: {err.get('msg')}")
        raise ConfigurationError(
            "Invalid configuration: " + "; ".join(problems)
        ) from exc


@lru_cache
def get_settings() -> Settings:
    return load_settings()
