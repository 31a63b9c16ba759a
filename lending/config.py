"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class LendingConfig(BaseSettings):
    """Installment lending engine configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LENDING_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Storage configuration
    storage_backend: str = "csv"  # csv or memory
    data_dir: str = "data"
    loans_table: str = "prestamos"
    payments_table: str = "pagos"

    # Loans of this client id are never written to storage (seed/test data).
    # Empty string disables the exclusion.
    excluded_client_id: str = "00000000"

    # Loan ids are zero-padded to this width ("0001")
    loan_id_width: int = 4

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr


# Global configuration instance
config = LendingConfig()


def get_config() -> LendingConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LendingConfig:
    """Reload configuration from environment"""
    global config
    config = LendingConfig()
    return config
