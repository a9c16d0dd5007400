# storefront/config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./storefront.db")
SQL_ECHO = _as_bool(os.getenv("SQL_ECHO", "false"))

SECRET_KEY = os.getenv("JWT_SECRET", "change-me")  # в проде задаётся через JWT_SECRET
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "7"))

# Адреса фронтенда через запятую
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

SEED_DATA = _as_bool(os.getenv("SEED_DATA", "true"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", "3000"))
