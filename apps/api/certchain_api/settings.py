"""Application settings and configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: Optional[str] = None
    postgres_user: str = "certchain"
    postgres_password: str = "certchain_dev_password"
    postgres_db: str = "certchain"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    # Redis (per-request locks)
    redis_url: str = "redis://localhost:6379/0"
    request_lock_backend: str = "local"  # local, redis
    request_lock_ttl_seconds: int = 900  # must outlive a ledger confirmation

    # API
    api_port: int = 8000
    api_host: str = "0.0.0.0"
    environment: str = "development"
    secret_key: str = "dev-secret-key-change-in-production"  # API key digests

    # Ledger
    ledger_provider: str = "local"  # local, web3
    ledger_rpc_url: str = "http://127.0.0.1:7545"
    ledger_contract_address: Optional[str] = None
    ledger_private_key: Optional[str] = None  # Required for web3
    ledger_chain_id: int = 1337
    ledger_confirmation_timeout_seconds: int = 300
    ledger_id_bits: int = 256  # uint256 request ids in the contract
    ledger_local_confirmation_delay_seconds: float = 0.0

    # Reconciliation alerting
    reconciliation_alert_url: Optional[str] = None
    reconciliation_alert_timeout_seconds: int = 10

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    @property
    def database_url_computed(self) -> str:
        """Compute database URL if not explicitly set."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() in ("development", "test", "dev")

    def validate_production_settings(self):
        """Validate settings for production environment."""
        if self.is_development:
            return
        if self.secret_key == "dev-secret-key-change-in-production":
            raise ValueError("SECRET_KEY must be set outside development.")
        if self.ledger_provider == "local":
            raise ValueError(
                "LEDGER_PROVIDER=local is not allowed outside development. "
                "Use LEDGER_PROVIDER=web3."
            )
        if not self.ledger_private_key or not self.ledger_contract_address:
            raise ValueError(
                "LEDGER_PRIVATE_KEY and LEDGER_CONTRACT_ADDRESS are required in production."
            )
        if self.request_lock_backend == "local":
            raise ValueError(
                "REQUEST_LOCK_BACKEND=local only serializes within one process. "
                "Use REQUEST_LOCK_BACKEND=redis."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
