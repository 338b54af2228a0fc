from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import computed_field
from typing import ClassVar, Optional


class Settings(BaseSettings):
    # --- Project Info ---
    APP_NAME: str = "Bazaar Orders"
    ENV: str = "dev"  # dev, prod, test
    LOG_LEVEL: str = "INFO"

    # --- Database (AsyncPG) ---
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "bazaar_db"
    DATABASE_URL: Optional[str] = None  # Full override (e.g. sqlite+aiosqlite for local runs)
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # --- Security ---
    SECRET_KEY: str
    ENCRYPTION_KEY: str  # Fernet key shared with the auth service (bearer tokens)
    TOKEN_TTL_SECONDS: int = 12 * 60 * 60

    # --- Notifications ---
    NOTIFY_WEBHOOK_URL: Optional[str] = None
    NOTIFY_TIMEOUT_SECONDS: float = 5.0

    # --- Request Handling ---
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # --- Constants (Not loaded from .env) ---
    # Orders placed by an admin on a buyer's behalf are always settled upfront
    ADMIN_PAYMENT_METHOD: ClassVar[str] = "prepaid"
    DEFAULT_PAYMENT_METHOD: ClassVar[str] = "cod"
    SHIPPING_COUNTRY: ClassVar[str] = "India"

    # --- Computed Fields ---
    @computed_field
    @property
    def SQLALCHEMY_URL(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Pydantic V2 Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra fields in .env file
    )

settings = Settings()
