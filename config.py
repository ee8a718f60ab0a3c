import os
import re
from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, Field, field_validator

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value) -> timedelta:
    """Parse "15m", "1d", "3600" style expiry values."""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(seconds=int(amount) * _UNIT_SECONDS[unit])


class Settings(BaseModel):
    app_env: str = "development"
    log_level: str = "INFO"
    port: int = 8000
    client_url: str = "*"
    api_prefix: str = "/api/v1"

    database_url: str = "mongodb://localhost:27017"
    database_name: str = "videotube"

    access_token_secret: str = "dev_access_secret_change_me"
    access_token_expires_in: timedelta = Field(default=timedelta(days=1))
    refresh_token_secret: str = "dev_refresh_secret_change_me"
    refresh_token_expires_in: timedelta = Field(default=timedelta(days=10))

    upload_dir: str = Field(default_factory=lambda: os.path.join(os.getcwd(), "uploads"))
    media_base_url: str = ""
    cookie_secure: bool = True

    @field_validator("access_token_expires_in", "refresh_token_expires_in", mode="before")
    @classmethod
    def _parse_expiry(cls, value):
        return parse_duration(value)

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "Settings":
        env = os.environ if environ is None else environ
        mapping = {
            "APP_ENV": "app_env",
            "LOG_LEVEL": "log_level",
            "PORT": "port",
            "CLIENT_URL": "client_url",
            "API_PREFIX": "api_prefix",
            "DATABASE_URL": "database_url",
            "DATABASE_NAME": "database_name",
            "ACCESS_TOKEN_SECRET": "access_token_secret",
            "ACCESS_TOKEN_EXPIRES_IN": "access_token_expires_in",
            "REFRESH_TOKEN_SECRET": "refresh_token_secret",
            "REFRESH_TOKEN_EXPIRES_IN": "refresh_token_expires_in",
            "UPLOAD_DIR": "upload_dir",
            "MEDIA_BASE_URL": "media_base_url",
            "COOKIE_SECURE": "cookie_secure",
        }
        values = {field: env[key] for key, field in mapping.items() if env.get(key)}
        return cls(**values)
