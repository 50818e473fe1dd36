"""
Application settings

Values come from the process environment. A local ``.env`` file is loaded
first when present so development setups don't need exported variables.
"""
import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    database_url: str = Field("mongodb://localhost:27017", description="MongoDB connection string")
    database_name: str = Field("storefront", description="Database holding the store collections")
    database_timeout_ms: int = Field(5000, gt=0, description="Server selection timeout")
    jwt_secret: Optional[str] = Field(None, description="HS256 signing secret")
    jwt_expires_hours: int = Field(24, gt=0)
    bcrypt_rounds: int = Field(10, ge=4, le=31)
    environment: str = "development"
    log_level: str = "INFO"
    port: int = 8000


def _env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


@lru_cache
def get_settings() -> Settings:
    values = {
        "database_url": _env("DATABASE_URL", "MONGODB_URI"),
        "database_name": _env("DATABASE_NAME"),
        "database_timeout_ms": _env("DATABASE_TIMEOUT_MS"),
        "jwt_secret": _env("JWT_SECRET"),
        "jwt_expires_hours": _env("JWT_EXPIRES_HOURS"),
        "bcrypt_rounds": _env("BCRYPT_ROUNDS"),
        "environment": _env("ENVIRONMENT", "NODE_ENV"),
        "log_level": _env("LOG_LEVEL"),
        "port": _env("PORT"),
    }
    return Settings(**{k: v for k, v in values.items() if v is not None})
