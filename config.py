"""
Application settings

All environment lookups happen here, once. Every other module receives a
`Settings` instance through `get_settings()` (a FastAPI dependency that tests
can override).
"""

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_truthy(name: str, default: str = "true") -> bool:
    val = os.getenv(name, default)
    return str(val).strip().lower() in {"true", "1", "t", "yes", "y", "on"}


@dataclass(frozen=True)
class Settings:
    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "devcamper"
    environment: str = "development"

    jwt_secret: str = "supersecretkey"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 30 * 24 * 60
    jwt_cookie_expire_days: int = 30

    file_upload_path: str = "./public/uploads"
    max_file_upload: int = 1_000_000

    geocoder_api_key: str = ""

    smtp_host: str = "localhost"
    smtp_port: int = 2525
    smtp_email: str = ""
    smtp_password: str = ""
    from_name: str = "DevCamper"
    from_email: str = "noreply@devcamper.io"

    log_level: str = "INFO"
    log_requests: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            mongodb_url=os.getenv("MONGODB_URL", cls.mongodb_url),
            database_name=os.getenv("DATABASE_NAME", cls.database_name),
            environment=os.getenv("ENVIRONMENT", cls.environment),
            jwt_secret=os.getenv("JWT_SECRET", cls.jwt_secret),
            jwt_expire_minutes=_env_int("JWT_EXPIRE_MINUTES", cls.jwt_expire_minutes),
            jwt_cookie_expire_days=_env_int("JWT_COOKIE_EXPIRE_DAYS", cls.jwt_cookie_expire_days),
            file_upload_path=os.getenv("FILE_UPLOAD_PATH", cls.file_upload_path),
            max_file_upload=_env_int("MAX_FILE_UPLOAD", cls.max_file_upload),
            geocoder_api_key=os.getenv("GEOCODER_API_KEY", cls.geocoder_api_key),
            smtp_host=os.getenv("SMTP_HOST", cls.smtp_host),
            smtp_port=_env_int("SMTP_PORT", cls.smtp_port),
            smtp_email=os.getenv("SMTP_EMAIL", cls.smtp_email),
            smtp_password=os.getenv("SMTP_PASSWORD", cls.smtp_password),
            from_name=os.getenv("FROM_NAME", cls.from_name),
            from_email=os.getenv("FROM_EMAIL", cls.from_email),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            log_requests=_env_truthy("LOG_REQUESTS", "true"),
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
