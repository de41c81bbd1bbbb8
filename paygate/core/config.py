"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


TRANSFER_BACKENDS = ("sql", "memory", "http")


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated (e.g. http://localhost:3000,http://admin-ui:80). Empty = default list in code.
    cors_origins: str = ""

    # ===========================================
    # DATABASE
    # ===========================================
    database_url: str  # Required, no default

    # ===========================================
    # REDIS (idempotency keys, circuit breaker state)
    # ===========================================
    redis_url: str  # Required, no default

    # ===========================================
    # PAYWALL REGISTRY
    # ===========================================
    admin_account: str  # Required, no default: initial registry owner
    custody_account: str = "paygate-custody"
    # Initial batch, comma-separated and aligned by position.
    initial_tokens: str = ""
    initial_month_prices: str = ""
    initial_year_prices: str = ""
    # Header carrying the caller account id on purchase/admin requests
    caller_header: str = "X-Account-Id"

    # ===========================================
    # VALUE TRANSFER SERVICE
    # ===========================================
    transfer_backend: str = "sql"  # sql, memory, http
    transfer_service_url: str = ""
    transfer_service_api_key: str | None = None
    transfer_service_timeout: float = 10.0

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    # ===========================================
    # STATE MANAGEMENT
    # ===========================================
    idempotency_ttl: int = 300  # 5 minutes

    @field_validator("transfer_backend")
    @classmethod
    def validate_transfer_backend(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in TRANSFER_BACKENDS:
            raise ValueError(f"transfer_backend must be one of {', '.join(TRANSFER_BACKENDS)}")
        return v

    @field_validator("initial_month_prices", "initial_year_prices")
    @classmethod
    def validate_price_list(cls, v: str) -> str:
        """Prices are non-negative integers in the token's smallest unit."""
        for item in _split_csv(v):
            if not item.isdigit():
                raise ValueError(f"invalid price '{item}': expected a non-negative integer")
        return v

    @property
    def initial_tokens_list(self) -> list[str]:
        return _split_csv(self.initial_tokens)

    @property
    def initial_month_prices_list(self) -> list[int]:
        return [int(p) for p in _split_csv(self.initial_month_prices)]

    @property
    def initial_year_prices_list(self) -> list[int]:
        return [int(p) for p in _split_csv(self.initial_year_prices)]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
