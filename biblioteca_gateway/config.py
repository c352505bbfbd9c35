"""Configuration management using Pydantic Settings"""

from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./biblioteca.db"

    # External Services
    notify_webhook_url: Optional[str] = None
    blob_store_base: str = "http://localhost:8003/storage"

    # Service
    service_name: str = "biblioteca-gateway"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = 5.0
    webhook_max_retries: int = 3
    webhook_backoff_base: float = 0.5  # Exponential backoff base in seconds

    # Loan policy applied at process start
    default_loan_days: Dict[str, int] = Field(
        default_factory=lambda: {
            "estudiante": 7,
            "profesor": 15,
            "bibliotecario": 14,
            "administrador": 30,
        }
    )
    default_max_renewals: int = 2
    default_max_active_loans: int = 3


settings = Settings()
