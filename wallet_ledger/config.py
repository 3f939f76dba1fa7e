from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./wallet_ledger.db"
    PROJECT_NAME: str = "Wallet Ledger API"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Logging configuration
    LOG_DIR: str = "logs"
    LOG_MAX_FILES: int = 5
    LOG_MAX_SIZE_MB: int = 5
    LOG_EXCLUDED_PATHS: list[str] = [
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
    ]
    LOG_LEVEL: str = "INFO"

    # Session tokens (opaque, stored in auth_tokens)
    TOKEN_EXPIRY_HOURS: int = 24
    TOKEN_SWEEP_INTERVAL_SECONDS: int = 3600  # 0 disables the background sweep

    # Blacklist (reputation) API configuration
    BLACKLIST_API_URL: str = "https://adjutor.lendsqr.com/v2/verification/karma"
    BLACKLIST_API_KEY: str | None = None
    BLACKLIST_API_TIMEOUT_SECONDS: float = 5.0

    # Ledger store
    DB_LOCK_TIMEOUT_MS: int = 5000
    DB_STATEMENT_TIMEOUT_MS: int = 15000
    DB_BUSY_TIMEOUT_SECONDS: float = 30.0  # SQLite only
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_CREATE_TABLES: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
