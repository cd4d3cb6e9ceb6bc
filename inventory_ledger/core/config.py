from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # these must be set in the environment
    database_url: str

    # Optional Settings with default values
    debug: bool = False
    log_file: str = "app.log"

    default_currency: str = "USD"

    # ConcurrentModificationError retry policy
    ledger_max_attempts: int = 3
    ledger_retry_wait_seconds: float = 0.05

    default_page_size: int = 20
    max_page_size: int = 100

    app_name: str = "Inventory Ledger Service"
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
