from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str

    REDIS_URL: str = "redis://localhost:6379/0"

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    SUBMISSION_LOCK_TTL: int = 30  # seconds

    # Clients may only change the PO confirmation and payment columns of their orders.
    # False falls back to the status-only check.
    ORDER_CLIENT_COLUMN_ALLOWLIST: bool = True
    # Deny direct (non-admin) writes to credit_used / current_balance / rating.
    PROTECT_FINANCIAL_COUNTERS: bool = False

    API_TITLE: str = "PO Confirmation Service"
    API_DESCRIPTION: str = "Client purchase-order confirmation with store-enforced write authorization"
    API_VERSION: str = "1.0.0"

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
