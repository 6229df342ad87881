from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    LEDGER_STORE: Literal["sql", "memory"] = "sql"
    BILLING_TIMEZONE: str = "UTC"
    CURRENCY: str = "NAD"
    SERVICES: List[str] = ["Water", "Electricity", "Property Rates", "Refuse Collection"]
    STATEMENT_TIMEOUT_SECONDS: float = 10.0

    RATE_LIMIT_ENABLED: bool = True
    STATEMENT_RATE_LIMIT: str = "30/minute"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
