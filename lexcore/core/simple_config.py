"""
Simple Configuration
Environment driven settings for the access control and client lifecycle core
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


def _env_flag(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes")


class SimpleSettings:
    """Settings read once from the process environment (and .env)"""

    def __init__(self):
        self.ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
        self.DEBUG = _env_flag("DEBUG")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

        # Store of record
        self.DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./lexcore.db")
        self.DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
        self.DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))
        self.DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "3600"))

        # Tokens are minted by the identity provider; this service only verifies them
        self.JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "lexcore-development-secret-key-change-in-production-32")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.AUTH_LOCAL_ISSUER = os.getenv("AUTH_LOCAL_ISSUER", "lexcore-identity")
        self.AUTH_TRUSTED_ISSUERS = _env_list("AUTH_TRUSTED_ISSUERS", "lexcore-identity")

        # Guard redirect targets
        self.SIGN_IN_PATH = os.getenv("SIGN_IN_PATH", "/login")
        self.DEFAULT_LANDING_PATH = os.getenv("DEFAULT_LANDING_PATH", "/dashboard")
        self.CLIENT_LIST_PATH = os.getenv("CLIENT_LIST_PATH", "/clients")

        # Per-actor client stores held in memory; least recently used evicted first
        self.CLIENT_STORE_LIMIT = int(os.getenv("CLIENT_STORE_LIMIT", "500"))

        # Linked-account service; empty URL disables provisioning
        self.ACCOUNT_SERVICE_URL = os.getenv("ACCOUNT_SERVICE_URL", "")
        self.ACCOUNT_SERVICE_TOKEN = os.getenv("ACCOUNT_SERVICE_TOKEN", "")
        self.ACCOUNT_SERVICE_TIMEOUT_SECONDS = float(os.getenv("ACCOUNT_SERVICE_TIMEOUT_SECONDS", "10"))

        self.CORS_ORIGINS = _env_list("CORS_ORIGINS", "http://localhost:5173")


settings = SimpleSettings()

DATABASE_CONFIG = {
    "pool_pre_ping": True,
    "echo": settings.DEBUG,
}
if not settings.DATABASE_URL.startswith("sqlite"):
    DATABASE_CONFIG.update(
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )

JWT_CONFIG = {
    "secret_key": settings.JWT_SECRET_KEY,
    "algorithm": settings.JWT_ALGORITHM,
    "issuer": settings.AUTH_LOCAL_ISSUER,
    "trusted_issuers": settings.AUTH_TRUSTED_ISSUERS,
}
