from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # App settings
    PROJECT_NAME: str = "Spendwise"
    API_PREFIX: str = "/api"
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["http://localhost:3000", "http://localhost:8000"])

    # DynamoDB
    DYNAMO_REGION: str = Field(default="eu-west-1")
    DYNAMO_ENDPOINT_URL: Optional[str] = Field(default=None)
    DYNAMO_EXPENSES_TABLE: str = Field(default="spendwise-expenses", validation_alias="DYNAMO_TABLE_EXPENSES")
    DYNAMO_TRANSACTIONS_TABLE: str = Field(default="spendwise-transactions", validation_alias="DYNAMO_TABLE_TRANSACTIONS")
    DYNAMO_BUDGETS_TABLE: str = Field(default="spendwise-budgets", validation_alias="DYNAMO_TABLE_BUDGETS")
    DYNAMO_CATEGORIES_TABLE: str = Field(default="spendwise-categories", validation_alias="DYNAMO_TABLE_CATEGORIES")
    DYNAMO_CONNECT_TIMEOUT: float = 3.0
    DYNAMO_READ_TIMEOUT: float = 5.0
    DYNAMO_MAX_ATTEMPTS: int = 3

    # Redis cache
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    REDIS_SOCKET_TIMEOUT: float = 2.0

    # Cache durations (seconds)
    COLLECTION_CACHE_TTL: int = 60 * 60  # 1 hour
    INSIGHT_CACHE_TTL: int = 60 * 60  # 1 hour
    REPORT_CACHE_TTL: int = 60 * 60 * 24  # 24 hours

    # Notifications
    NOTIFICATION_LOG_SIZE: int = 50
    LIVE_EMIT_TIMEOUT: float = 2.0

    # JWT Authentication
    JWT_SECRET_KEY: str = Field(default="1f0c6a3e9b7d4c2a8e5f1b3d7a9c0e2f4b6d8a1c3e5f7b9d0a2c4e6f8b1d3a5c", validation_alias="JWT_SECRET")
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    # Scheduler
    SCHEDULER_ENABLED: bool = Field(default=True)
    ALERT_SWEEP_MINUTES: int = 15
    PAYMENT_REMINDER_DAYS: int = 3


settings = Settings()
