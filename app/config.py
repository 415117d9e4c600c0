import os
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    ENV: str = os.getenv("ENV", "development")  # development, dev-server, production
    DEBUG: bool = ENV in ["development", "dev-server"]

    # Database settings
    POSTGRES_HOST: str = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "rbacadmin")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "rbacpass")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "rbac_db")
    POSTGRES_PORT: int = int(os.getenv("POSTGRES_PORT", "5432"))
    DATABASE_URL: str = os.getenv("DATABASE_URL", f"postgresql://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}")

    # Database connection pool settings
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "10"))
    DB_MAX_OVERFLOW: int = int(os.getenv("DB_MAX_OVERFLOW", "20"))
    DB_POOL_TIMEOUT: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    DB_POOL_RECYCLE: int = int(os.getenv("DB_POOL_RECYCLE", "3600"))

    # Auth settings
    SECRET_KEY: str = os.getenv("SECRET_KEY", "supersecretkey")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))

    # Decoded bearer tokens are cached; the claims of a signed token never change
    TOKEN_CACHE_TTL_SECONDS: int = int(os.getenv("TOKEN_CACHE_TTL_SECONDS", "300"))
    TOKEN_CACHE_MAX_SIZE: int = int(os.getenv("TOKEN_CACHE_MAX_SIZE", "10000"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Audit
    AUDIT_ENABLED: bool = os.getenv("AUDIT_ENABLED", "true").lower() == "true"

    # API specific settings
    API_PREFIX: str = "/api/v1"
    APP_NAME: str = "RBAC Manager"
    APP_VERSION: str = "1.0.0"

    class Config:
        case_sensitive = True
        env_file = None

settings = Settings()
