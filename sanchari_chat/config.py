from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    mongo_url: str = "mongodb://localhost:27017"
    mongo_db_name: str = "sanchari"
    # standalone mongod has no multi-document transactions
    mongo_transactions: bool = True

    redis_url: Optional[str] = None

    jwt_secret: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"

    log_level: str = "INFO"

    subscription_retry_initial: float = 0.5
    subscription_retry_max: float = 30.0

    default_page_size: int = 50

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
