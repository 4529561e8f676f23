from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./retailpos.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    FRONTEND_ORIGINS: List[str] = ["http://localhost:5173"]
    LOG_LEVEL: str = "INFO"
    RESET_DB: bool = False

    # returns / exchange workflow
    PRICE_TOLERANCE: float = 0.01
    BILL_SEARCH_MIN_CHARS: int = 2
    RECENT_RETURNS_LIMIT: int = 5
    RETURN_SESSION_TTL_SECONDS: int = 1800
    SESSION_SWEEP_INTERVAL_SECONDS: int = 60

    # shop defaults, overridable through /api/settings/shop
    CURRENCY_SYMBOL: str = "₹"
    DEFAULT_SHOP_NAME: str = "My Shop"
    DEFAULT_BILL_PREFIX: str = "INV"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
