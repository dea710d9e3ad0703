from dotenv import load_dotenv
from pydantic import BaseModel
from typing import List, Optional
import os

# Load .env before reading any variable
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "development")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./finledger.db")
    sql_echo: bool = _env_bool("SQL_ECHO")
    db_timeout_seconds: float = float(os.getenv("DB_TIMEOUT_SECONDS", "30"))

    jwt_secret: Optional[str] = os.getenv("JWT_SECRET")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

    # Must be exactly 32 bytes; checked when the cipher is built
    encryption_key: Optional[str] = os.getenv("ENCRYPTION_KEY")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: List[str] = _env_list(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000",
    )


# Global settings instance
settings = Settings()
