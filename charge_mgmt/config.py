"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CHARGE_MGMT_",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./charge_mgmt.db"
    auto_create_schema: bool = True
    seed_reference_data: bool = True

    # Service
    service_name: str = "charge-mgmt"
    service_version: str = "1.0.0"
    log_level: str = "INFO"
    api_prefix: str = "/charge-mgmt/api"
    host: str = "0.0.0.0"
    port: int = 8080
    currency: str = "INR"

    # Batch processing
    batch_concurrency: int = 8
    batch_timeout_seconds: float = 30.0
    max_batch_size: int = 1000

    # HTTP Client
    api_base_url: str = "http://localhost:8080/charge-mgmt/api"
    http_timeout_seconds: float = 10.0
    http_max_retries: int = 3
    http_backoff_base: float = 0.5  # Exponential backoff base in seconds


settings = Settings()
